import random
import unittest
from collections import Counter
from unittest.mock import patch

from giftshuffle.shuffle.selection import pick_weighted


class PickWeightedTests(unittest.TestCase):
    def test_ticket_walks_cumulative_weights(self):
        rng = random.Random()
        items = ["a", "b", "c"]
        weights = [2, 0, 3]
        expectations = {1: "a", 2: "a", 3: "c", 4: "c", 5: "c"}
        for ticket, expected in expectations.items():
            with patch.object(rng, "randint", return_value=ticket) as randint:
                self.assertEqual(pick_weighted(items, weights, rng=rng), expected)
            randint.assert_called_once_with(1, 5)

    def test_zero_weight_never_chosen(self):
        rng = random.Random(7)
        picks = Counter(pick_weighted(["x", "y"], [0, 4], rng=rng) for _ in range(200))
        self.assertEqual(picks["x"], 0)
        self.assertEqual(picks["y"], 200)

    def test_equal_weights_split_evenly(self):
        rng = random.Random(1234)
        picks = Counter(pick_weighted(["x", "y"], [5, 5], rng=rng) for _ in range(4000))
        self.assertGreater(picks["x"], 1800)
        self.assertGreater(picks["y"], 1800)

    def test_rejects_empty_distribution(self):
        with self.assertRaises(ValueError):
            pick_weighted(["x"], [0])
        with self.assertRaises(ValueError):
            pick_weighted(["x", "y"], [1])


if __name__ == "__main__":
    unittest.main()
