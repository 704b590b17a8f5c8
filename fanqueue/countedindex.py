"""Wrapping sequence counters shared between queue participants.

A ``CountedIndex`` holds a monotonically increasing 64-bit counter whose low
bits select a slot in a power-of-two sized ring. Updates go through
``Transaction`` objects, which load the counter once and later try to commit
an increment with compare-and-swap semantics.
"""

from __future__ import annotations

import threading

_WORD_BITS = 64
_WORD_MOD = 1 << _WORD_BITS

MAX_WRAP = (1 << 62) - 1
"""Largest ring size a counter accepts."""

MASK_IND = 1 << 63
"""Bit used to tag a counter value."""

MASK_TAG = MASK_IND - 1

INITIAL_QUEUE_FLAG = _WORD_MOD - 1
"""A value no queue entry ever holds as its initial valid flag."""


def _wrap_word(value: int) -> int:
    return value % _WORD_MOD


def past(check: int, seq: int) -> tuple[int, bool]:
    """Return the wrapped distance ``check - seq`` and whether ``seq`` is ahead of ``check``."""
    diff = _wrap_word(check - seq)
    return diff, diff > MAX_WRAP


def is_tagged(val: int) -> bool:
    """Return True if the tag bit of ``val`` is set."""
    return (val & MASK_IND) != 0


def rm_tag(val: int) -> int:
    """Return ``val`` with the tag bit cleared."""
    return val & MASK_TAG


def get_valid_wrap(val: int) -> int:
    """Round a requested capacity to a usable ring size."""
    if val >= MAX_WRAP:
        return MAX_WRAP
    if val <= 0:
        return 1
    return 1 << (val - 1).bit_length()


def _validate_wrap(val: int) -> None:
    if val <= 0:
        raise ValueError("zero size received")
    if val & (val - 1):
        raise ValueError("non power-of-two size received")
    if val > MAX_WRAP:
        raise ValueError("too large size received")


class CountedIndex:
    """A thread-safe counter that wraps around a power-of-two ring."""

    __slots__ = ("_value", "_mask", "_lock")

    def __init__(self, wrap: int, value: int = 0) -> None:
        _validate_wrap(wrap)
        self._value = _wrap_word(value)
        self._mask = wrap - 1
        self._lock = threading.Lock()

    def wrap_at(self) -> int:
        """Return the ring size this counter wraps at."""
        return self._mask + 1

    def load(self) -> int:
        """Return the current position within the ring."""
        with self._lock:
            return self._value & self._mask

    def load_count(self) -> int:
        """Return the full, unwrapped counter value."""
        with self._lock:
            return self._value

    def load_transaction(self) -> Transaction:
        """Snapshot the counter into a transaction that can later commit an increment."""
        return Transaction(self, self.load_count())

    @staticmethod
    def get_previous(start: int, by: int) -> int:
        """Return the counter value ``by`` steps before ``start``."""
        return _wrap_word(start - by)

    def _compare_exchange(self, expected: int, new: int) -> tuple[bool, int]:
        with self._lock:
            current = self._value
            if current == expected:
                self._value = new
                return True, current
            return False, current

    def _store(self, new: int) -> None:
        with self._lock:
            self._value = new


class Transaction:
    """A loaded snapshot of a ``CountedIndex`` awaiting commit."""

    __slots__ = ("_index", "_loaded", "_mask")

    def __init__(self, index: CountedIndex, loaded: int) -> None:
        self._index = index
        self._loaded = loaded
        self._mask = index._mask

    def get(self) -> tuple[int, int]:
        """Return the ring position and the full counter value of the snapshot."""
        return self._loaded & self._mask, self._loaded

    def matches_previous(self, val: int) -> bool:
        """Return True if ``val`` equals the snapshot one ring-length earlier."""
        wrap = self._mask + 1
        return rm_tag(_wrap_word(self._loaded - wrap)) == val

    def commit(self, by: int) -> Transaction | None:
        """Try to advance the counter by ``by``.

        Returns None on success, or a fresh transaction holding the value that
        was found if another participant moved the counter first.
        """
        new = rm_tag(_wrap_word(self._loaded + by))
        ok, current = self._index._compare_exchange(self._loaded, new)
        if ok:
            return None
        return Transaction(self._index, current)

    def commit_direct(self, by: int) -> None:
        """Unconditionally store the snapshot advanced by ``by``."""
        self._index._store(rm_tag(_wrap_word(self._loaded + by)))

    def reload(self) -> Transaction:
        """Return a new transaction with a fresh snapshot of the counter."""
        return self._index.load_transaction()