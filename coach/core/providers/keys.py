"""Round-robin credential rotation for a single provider.

A provider may hold several API keys, each with its own rate limit.
``KeyRotator`` hands them out in order, advancing a shared cursor on every
call before the outcome of the attempt is known, so overlapping requests
spread across keys instead of hammering the first one.

Examples:
    >>> rotator = KeyRotator(["k1", "k2", "k3"])
    >>> rotator.next_key(), rotator.next_key()
    ('k1', 'k2')
    >>> rotator.cursor
    2

Tests:
    - tests/unit/test_keys.py
"""

import threading
from collections.abc import Iterable

__all__ = ["KeyRotator", "mask_key"]

MASK_VISIBLE_CHARS = 5


def mask_key(key: str) -> str:
    """Render a credential for logs, showing only its last characters.

    Args:
        key: The secret to mask.

    Returns:
        str: ``...`` followed by the last five characters, or ``*****`` for
        keys too short to reveal anything safely.
    """
    if len(key) <= MASK_VISIBLE_CHARS:
        return "*" * MASK_VISIBLE_CHARS
    return f"...{key[-MASK_VISIBLE_CHARS:]}"


class KeyRotator:
    """Round-robin cursor over an ordered, fixed credential set.

    Attributes:
        keys: The credentials, in configuration order.
    """

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys: tuple[str, ...] = tuple(keys)
        self._cursor = 0
        self._advances = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.keys)

    def __bool__(self) -> bool:
        return bool(self.keys)

    def __repr__(self) -> str:
        return f"KeyRotator(keys={self.masked()}, cursor={self._cursor})"

    @property
    def cursor(self) -> int:
        """Index of the key the next call will return."""
        return self._cursor

    @property
    def advances(self) -> int:
        """Total number of keys handed out since construction."""
        return self._advances

    def next_key(self) -> str:
        """Return the key under the cursor and advance it.

        Raises:
            LookupError: If the credential set is empty.
        """
        if not self.keys:
            raise LookupError("No credentials to rotate")
        with self._lock:
            key = self.keys[self._cursor]
            self._cursor = (self._cursor + 1) % len(self.keys)
            self._advances += 1
        return key

    def masked(self) -> list[str]:
        """Masked form of every key, safe for logs and status output."""
        return [mask_key(key) for key in self.keys]
