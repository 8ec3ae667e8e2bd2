from collections.abc import Iterator
from contextlib import contextmanager
import threading

from k8s_mcp.discovery import ResourceLocator


class _ReadWriteLock:
    """
    Many concurrent readers or a single writer. Neither side is re-entrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class LocatorCache:
    """
    Maps resource kinds to the #ResourceLocator they were resolved to. Safe for use from many threads at once.

    The cache only ever holds results of successful discovery. Entries are not evicted on their own, the cluster
    schema is assumed to be stable for the lifetime of the process; use #invalidate() when that is not the case
    (e.g. after a custom resource definition was installed or upgraded).
    """

    def __init__(self) -> None:
        self._entries: dict[str, ResourceLocator] = {}
        self._lock = _ReadWriteLock()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, kind: str) -> bool:
        with self._lock.read():
            return kind in self._entries

    def get(self, kind: str) -> ResourceLocator | None:
        with self._lock.read():
            return self._entries.get(kind)

    def put(self, kind: str, locator: ResourceLocator) -> None:
        """
        Store the locator for a kind. Storing the same kind again replaces the entry, which is harmless since
        resolution is deterministic for a given cluster state.
        """

        with self._lock.write():
            self._entries[kind] = locator

    def invalidate(self, kind: str | None = None) -> None:
        """
        Drop the entry for *kind*, or all entries if no kind is given.
        """

        with self._lock.write():
            if kind is None:
                self._entries.clear()
            else:
                self._entries.pop(kind, None)

    def kinds(self) -> list[str]:
        with self._lock.read():
            return sorted(self._entries)
