import logging
import threading
from collections.abc import Callable, Hashable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, TypeVar

T = TypeVar("T")

_logger = logging.getLogger(__name__)

_MISSING = object()


class ReadWriteLock:
    """Many concurrent readers or one writer.

    A waiting writer holds off new readers, so a steady stream of reads
    cannot starve writes.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def reading(self) -> Iterator[None]:
        with self._condition:
            while self._writer or self._writers_waiting:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if not self._readers:
                    self._condition.notify_all()

    @contextmanager
    def writing(self) -> Iterator[None]:
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


def cache_key(key: Sequence[Hashable] | str) -> str:
    if isinstance(key, str):
        return key
    return "/".join(str(part) for part in key)


class RequestCache:
    """Key/value store that lives for one inbound unit of work.

    ``set`` hands back an undo callable restoring the previous value (or the
    absence of one), so callers can scope an override to a block of work.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._values: dict[str, Any] = {}

    def get(self, key: Sequence[Hashable] | str, fallback: T = None) -> tuple[T, bool]:
        flat_key = cache_key(key)
        with self._lock.reading():
            value = self._values.get(flat_key, _MISSING)
        if value is _MISSING:
            return fallback, False
        _logger.debug(f"Cache hit for {flat_key}")
        return value, True

    def set(self, key: Sequence[Hashable] | str, value: Any) -> Callable[[], None]:
        flat_key = cache_key(key)
        with self._lock.writing():
            previous = self._values.get(flat_key, _MISSING)
            self._values[flat_key] = value

        def undo() -> None:
            with self._lock.writing():
                if previous is _MISSING:
                    self._values.pop(flat_key, None)
                else:
                    self._values[flat_key] = previous

        return undo

    def delete(self, key: Sequence[Hashable] | str) -> None:
        with self._lock.writing():
            self._values.pop(cache_key(key), None)

    @contextmanager
    def scoped(self, key: Sequence[Hashable] | str, value: Any) -> Iterator[None]:
        undo = self.set(key, value)
        try:
            yield
        finally:
            undo()

    def __contains__(self, key: Sequence[Hashable] | str) -> bool:
        with self._lock.reading():
            return cache_key(key) in self._values

    def __len__(self) -> int:
        with self._lock.reading():
            return len(self._values)
