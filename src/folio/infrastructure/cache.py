"""Per-process document cache and the write path that keeps it honest.

One :class:`DocumentCache` is built per process and handed to every
repository by reference. It holds one snapshot of parsed records per
repository id:

- every read gets its own deep copy, so callers may mutate freely;
- callers racing on a cold cache share one in-flight load;
- invalidation drops the snapshot and the in-flight load, and bumps a
  generation counter so a load that overlapped a write is never stored.

:class:`InvalidatingFileSystem` wraps the repository's filesystem and
invalidates after every mutating call. It is the only write path, so the
cache is never stale after a write made through the repository.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable, Iterator
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from folio.infrastructure.filesystem import FileInfo, FileSystem

logger = logging.getLogger(__name__)


class DocumentCache:
    """Snapshot cache keyed by repository id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshots: dict[str, Any] = {}
        self._inflight: dict[str, Future[Any]] = {}
        self._generations: dict[str, int] = {}

    def get(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return a private copy of the snapshot for *key*, loading it if needed."""
        with self._lock:
            if key in self._snapshots:
                return copy.deepcopy(self._snapshots[key])
            future = self._inflight.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._inflight[key] = future
            generation = self._generations.get(key, 0)

        if not owner:
            return copy.deepcopy(future.result())

        try:
            records = loader()
        except BaseException as exc:
            with self._lock:
                if self._inflight.get(key) is future:
                    del self._inflight[key]
            future.set_exception(exc)
            raise

        with self._lock:
            if self._inflight.get(key) is future:
                del self._inflight[key]
            if self._generations.get(key, 0) == generation:
                self._snapshots[key] = records
            else:
                logger.debug("Discarding cache load for %s: invalidated mid-load", key)
        future.set_result(records)
        return copy.deepcopy(records)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._snapshots.pop(key, None)
            self._inflight.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1


class InvalidatingFileSystem:
    """Delegating :class:`FileSystem` that invalidates a cache key on every write."""

    def __init__(self, inner: FileSystem, cache: DocumentCache, key: str) -> None:
        self.inner = inner
        self._cache = cache
        self._key = key

    def _after_write(self) -> None:
        self._cache.invalidate(self._key)

    # --- reads ---

    def read_text(self, path: str) -> str:
        return self.inner.read_text(path)

    def read_bytes(self, path: str) -> bytes:
        return self.inner.read_bytes(path)

    def exists(self, path: str) -> bool:
        return self.inner.exists(path)

    def is_dir(self, path: str) -> bool:
        return self.inner.is_dir(path)

    def is_file(self, path: str) -> bool:
        return self.inner.is_file(path)

    def stat(self, path: str) -> FileInfo:
        return self.inner.stat(path)

    def walk(self, path: str = "") -> Iterator[FileInfo]:
        return self.inner.walk(path)

    def read_dir(self, path: str = "") -> list[FileInfo]:
        return self.inner.read_dir(path)

    # --- writes ---

    def write_text(self, path: str, content: str) -> None:
        try:
            self.inner.write_text(path, content)
        finally:
            self._after_write()

    def write_bytes(self, path: str, data: bytes) -> None:
        try:
            self.inner.write_bytes(path, data)
        finally:
            self._after_write()

    def mkdir_all(self, path: str) -> None:
        try:
            self.inner.mkdir_all(path)
        finally:
            self._after_write()

    def remove(self, path: str) -> None:
        try:
            self.inner.remove(path)
        finally:
            self._after_write()

    def remove_all(self, path: str) -> None:
        try:
            self.inner.remove_all(path)
        finally:
            self._after_write()

    def rename(self, old: str, new: str) -> None:
        try:
            self.inner.rename(old, new)
        finally:
            self._after_write()
