"""
Reader/writer lock and an atomically swappable snapshot.

Decision evaluations (many, concurrent) read the current policy set or profile
repository; reloads (rare) publish a replacement. Readers never block each
other. A waiting writer blocks new readers so a steady stream of evaluations
cannot starve a reload.

The snapshot is rebuilt outside any lock; only the reference swap happens
under the write lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

T = TypeVar("T")


class ReadWriteLock:
    """Writer-preferring multiple-reader/single-writer lock (not reentrant)."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a matching acquire_read()")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called without a matching acquire_write()")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class Snapshot(Generic[T]):
    """
    Holder of an immutable value replaced wholesale.

    `get()` takes the read lock, `swap()` the write lock. Returns the
    previous value from swap so callers can log what was replaced.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._lock = ReadWriteLock()

    def get(self) -> T:
        with self._lock.read():
            return self._value

    def swap(self, value: T) -> T:
        with self._lock.write():
            previous, self._value = self._value, value
            return previous
