"""Small numeric helpers shared by the scoring and statistics code."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (round() rounds to even)."""
    return int(math.floor(value + 0.5))
