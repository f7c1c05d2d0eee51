import hashlib
from typing import Sequence, TypeVar

T = TypeVar("T")


def seeded_index(seed: str, size: int) -> int:
    """Map `seed` to an index in [0, size).

    Deterministic on purpose: identical inputs pick the same variant, so reruns
    are reproducible while different seeds spread across the catalog. This is
    not randomness.
    """
    if size <= 0:
        raise ValueError("size must be positive")
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % size


def seeded_choice(seed: str, catalog: Sequence[T]) -> T:
    return catalog[seeded_index(seed, len(catalog))]


def short_hash(*parts: object, length: int = 16) -> str:
    raw = "|".join(str(p) for p in parts)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:length]
