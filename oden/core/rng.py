import random
import secrets
from typing import Callable

RngFactory = Callable[[], random.Random]


def default_rng() -> random.Random:
    """Fresh generator per request, seeded from the OS."""
    return random.Random(secrets.randbits(64))


def seeded(seed: int) -> RngFactory:
    """Factory that replays the same sequence for every call."""
    return lambda: random.Random(seed)
