"""Random identifier generation."""

from __future__ import annotations

import secrets
from collections.abc import Callable

# No 0/O/I/l so ids read unambiguously in logs
ID_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

IdGenerator = Callable[[], str]


def generate_id(prefix: str = "", length: int = 21, alphabet: str = ID_ALPHABET) -> str:
    """Return *prefix* padded with random characters up to *length*.

    The prefix counts toward *length*, so ``generate_id("evt_")`` is 21
    characters long in total.

    Raises:
        ValueError: If the prefix is longer than *length*.
    """
    if len(prefix) > length:
        raise ValueError("Prefix length cannot exceed the total length")
    return prefix + "".join(secrets.choice(alphabet) for _ in range(length - len(prefix)))


def event_id() -> str:
    """Default generator for client event ids."""
    return generate_id("evt_")
