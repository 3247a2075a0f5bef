"""In-process readers/writer lock, one per backing file path.

Readers (read_graph, search_nodes, open_nodes) may overlap each other; a writer
(any mutation) runs alone. A waiting writer blocks new readers so a steady
stream of queries cannot starve mutations.

No cross-process locking: the process is assumed to be the sole writer of its
memory file.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class ReadWriteLock:
    """Writer-preferring readers/writer lock (thread-safe)."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


_registry: dict[str, ReadWriteLock] = {}
_registry_lock = threading.Lock()


def lock_for(path: Path | str) -> ReadWriteLock:
    """Return the process-wide lock guarding ``path`` (same path, same lock)."""
    key = os.path.normcase(str(Path(path).resolve()))
    with _registry_lock:
        lock = _registry.get(key)
        if lock is None:
            lock = _registry[key] = ReadWriteLock()
        return lock
