"""A small set of thread-safe flags used to signal queue readers."""

from __future__ import annotations

import threading
from dataclasses import dataclass

UPDATE_EPOCH = 1
NO_READER = 1 << 1


@dataclass(frozen=True)
class LoadedSignal:
    """An immutable snapshot of an ``AtomicSignal``."""

    flags: int

    def has_action(self) -> bool:
        """Return True if any flag is set."""
        return self.flags != 0

    def get_epoch(self) -> bool:
        """Return True if an epoch update was requested."""
        return (self.flags & UPDATE_EPOCH) != 0

    def get_reader(self) -> bool:
        """Return True if the no-reader flag is set."""
        return (self.flags & NO_READER) != 0


class AtomicSignal:
    """Flags that can be set and cleared atomically from several threads."""

    __slots__ = ("_flags", "_lock")

    def __init__(self) -> None:
        self._flags = 0
        self._lock = threading.Lock()

    def load(self) -> LoadedSignal:
        """Return a snapshot of the current flags."""
        with self._lock:
            return LoadedSignal(self._flags)

    def _fetch_or(self, bit: int) -> bool:
        with self._lock:
            prev = self._flags
            self._flags = prev | bit
        return (prev & bit) != 0

    def _fetch_and_not(self, bit: int) -> bool:
        with self._lock:
            prev = self._flags
            self._flags = prev & ~bit
        return (prev & bit) != 0

    def set_epoch(self) -> bool:
        """Set the epoch flag; return whether it was already set."""
        return self._fetch_or(UPDATE_EPOCH)

    def clear_epoch(self) -> bool:
        """Clear the epoch flag; return whether it was set."""
        return self._fetch_and_not(UPDATE_EPOCH)

    def set_reader(self) -> bool:
        """Set the no-reader flag; return whether it was already set."""
        return self._fetch_or(NO_READER)

    def clear_reader(self) -> bool:
        """Clear the no-reader flag; return whether it was set."""
        return self._fetch_and_not(NO_READER)