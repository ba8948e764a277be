import random
from typing import Iterable, List

SEED_RANGE = 1_000_000


def hash_string_to_seed(text: str) -> int:
    """djb2 (h * 33 + c) over 32 bits, folded to six digits."""
    h = 5381
    for ch in text:
        h = (h * 33 + ord(ch)) & 0xFFFFFFFF
    return h % SEED_RANGE


def normalize_cast(names: Iterable[str]) -> List[str]:
    return sorted({name.strip().lower() for name in names if name and name.strip()})


def seed_for(names: Iterable[str]) -> int:
    """
    Seed shared by every panel with the same cast, regardless of order, case or padding.
    An empty cast gets a random seed.
    """
    cast = normalize_cast(names)
    if not cast:
        return random.randrange(SEED_RANGE)
    if len(cast) == 1:
        return hash_string_to_seed(cast[0])
    return sum(hash_string_to_seed(name) for name in cast) % SEED_RANGE
