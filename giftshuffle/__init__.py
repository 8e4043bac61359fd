"""Round and allocation engine for live gift shuffle sessions."""
