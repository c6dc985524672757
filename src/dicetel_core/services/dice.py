import random


class Dice:
    """A fair die."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.SystemRandom()

    def roll(self, min: int = 1, max: int = 6) -> int:
        """Roll a value between ``min`` and ``max``, both inclusive."""
        return self._rng.randint(min, max)
