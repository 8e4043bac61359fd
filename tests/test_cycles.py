import unittest

from giftshuffle.shuffle.cycles import (
    breakdown_cycle,
    gifts_in_current_cycle,
    gifts_remaining_in_cycle,
    next_slot,
)


class BreakdownCycleTests(unittest.TestCase):
    def test_exact_multiple_closes_its_cycle(self):
        self.assertEqual(breakdown_cycle(50, 50), 1)
        self.assertEqual(breakdown_cycle(51, 50), 2)
        self.assertEqual(breakdown_cycle(100, 50), 2)
        self.assertEqual(breakdown_cycle(101, 50), 3)

    def test_before_first_draw_is_cycle_one(self):
        self.assertEqual(breakdown_cycle(0, 50), 1)
        self.assertEqual(breakdown_cycle(1, 50), 1)

    def test_rejects_bad_inputs(self):
        with self.assertRaises(ValueError):
            breakdown_cycle(3, 0)
        with self.assertRaises(ValueError):
            breakdown_cycle(-1, 10)

    def test_gifts_in_and_remaining(self):
        self.assertEqual(gifts_in_current_cycle(0, 10), 0)
        self.assertEqual(gifts_remaining_in_cycle(0, 10), 10)
        self.assertEqual(gifts_in_current_cycle(3, 10), 3)
        self.assertEqual(gifts_remaining_in_cycle(3, 10), 7)
        self.assertEqual(gifts_in_current_cycle(10, 10), 10)
        self.assertEqual(gifts_remaining_in_cycle(10, 10), 0)
        self.assertEqual(gifts_in_current_cycle(11, 10), 1)

    def test_next_slot(self):
        self.assertEqual(next_slot(0), 1)
        self.assertEqual(next_slot(41), 42)


if __name__ == "__main__":
    unittest.main()
