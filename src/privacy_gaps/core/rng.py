"""Deterministic seeded randomness for daily gap schedules.

A schedule must be unpredictable to a household member yet reproducible for
the same child and day, so every draw comes from a generator seeded by a
string derived from ``(child_id, calendar day)``.

The seed string is hashed with SHA-256 and the digest seeds a private
``random.Random`` instance. ``random.Random`` seeded with an integer yields
the same sequence on every platform and interpreter run, and the shared
module-level generator is never touched.

Example:
    >>> rng = create_seeded_random(generate_seed("child-alpha", "2025-12-16"))
    >>> 0.0 <= rng() < 1.0
    True
    >>> random_int_from_seed(rng, 2, 4) in (2, 3, 4)
    True
"""

from __future__ import annotations

import hashlib
import hmac
import math
import random
from typing import Callable

from pydantic import SecretStr

from privacy_gaps.core.models import DayLike, calendar_day

RandomFn = Callable[[], float]


def create_seeded_random(seed: str) -> RandomFn:
    """Create a generator of floats in ``[0, 1)`` from a string seed.

    Two generators built from the same seed produce identical sequences.

    Args:
        seed: Any string; typically the output of ``generate_seed``.

    Returns:
        A zero-argument callable returning the next float in the sequence.
    """
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    generator = random.Random(int.from_bytes(digest, "big"))
    return generator.random


def random_int_from_seed(rng: RandomFn, min_value: int, max_value: int) -> int:
    """Map one draw to an integer in ``[min_value, max_value]`` (inclusive).

    Raises:
        ValueError: If ``min_value > max_value``.
    """
    if min_value > max_value:
        raise ValueError(f"min_value ({min_value}) must not exceed max_value ({max_value})")
    return min_value + math.floor(rng() * (max_value - min_value + 1))


def generate_seed(child_id: str, day: DayLike, secret: SecretStr | str | None = None) -> str:
    """Derive the schedule seed for one child on one calendar day.

    Without a secret the seed is ``"{child_id}:{YYYY-MM-DD}"``. With a
    secret it is the hex HMAC-SHA256 of that string, so the schedule cannot
    be recomputed by anyone who knows the algorithm and the child id but not
    the secret.

    Args:
        child_id: Child identifier.
        day: Calendar day; datetimes are reduced to their UTC date, so every
            time of day maps to the same seed.
        secret: Optional server-side key.

    Returns:
        The seed string.
    """
    base = f"{child_id}:{calendar_day(day).isoformat()}"
    if secret is None:
        return base

    key = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
    return hmac.new(key.encode("utf-8"), base.encode("utf-8"), hashlib.sha256).hexdigest()
