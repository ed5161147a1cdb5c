"""Repository write lock.

At most one mutating operation runs against a repository root at a time,
across threads of one process and across independently launched
processes.

Two layers:

- **In process**: one reentrant ``threading.RLock`` per root, shared by
  every :class:`WriteLock` built for that root. Nested acquisition by the
  owning thread (update -> auto-rename) only bumps a depth counter.
- **Across processes**: a marker file ``.folio.lock`` created with
  ``O_CREAT | O_EXCL`` and holding ``{pid, host, token, acquired_at}``.
  It exists iff some process holds the lock.

Crash recovery is explicit. A marker is broken (with a warning) when its
mtime is older than ``stale_seconds``, or when its holder's pid is dead on
this host. Long-running holders call :meth:`WriteLock.refresh` to bump the
mtime as a heartbeat.

Inside the lock, reads see every earlier holder's writes: the outermost
acquisition runs ``on_acquire``, which the workspace uses to drop its
document cache.

Acquisition polls with exponential backoff and raises
:class:`~folio.errors.LockTimeoutError` past ``timeout_seconds``.
"""

from __future__ import annotations

import json
import os
import socket
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from folio.config.logging import get_logger
from folio.config.models import LockConfig
from folio.errors import LockTimeoutError, StorageError

logger = get_logger(__name__)

LOCK_FILENAME = ".folio.lock"


@dataclass
class _RootState:
    """Per-root, per-process lock state shared by all WriteLock instances."""

    rlock: threading.RLock
    depth: int = 0
    token: str | None = None


_STATES: dict[Path, _RootState] = {}
_STATES_GUARD = threading.Lock()


def _state_for(root: Path) -> _RootState:
    with _STATES_GUARD:
        state = _STATES.get(root)
        if state is None:
            state = _RootState(rlock=threading.RLock())
            _STATES[root] = state
        return state


def _pid_alive(pid: int) -> bool:
    if os.name == "nt":
        # os.kill(pid, 0) terminates the process on Windows.
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return True
    return True


class WriteLock:
    """Advisory, presence-based write lock for one repository root."""

    def __init__(
        self,
        root: Path,
        config: LockConfig | None = None,
        *,
        on_acquire: Callable[[], None] | None = None,
    ) -> None:
        self.root = root.resolve()
        self.path = self.root / LOCK_FILENAME
        self.config = config or LockConfig()
        self._on_acquire = on_acquire
        self._state = _state_for(self.root)

    def __repr__(self) -> str:
        return f"WriteLock({str(self.path)!r})"

    @property
    def is_held(self) -> bool:
        """True while some thread of this process holds the lock."""
        return self._state.depth > 0

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    def acquire(self) -> None:
        """Block until the lock is held by the calling thread.

        Raises:
            LockTimeoutError: Not acquired within ``timeout_seconds``.
            StorageError: The marker file cannot be created.
        """
        timeout = self.config.timeout_seconds
        deadline = time.monotonic() + timeout
        if not self._state.rlock.acquire(timeout=timeout):
            msg = f"timed out after {timeout:g}s waiting for write lock {self.path}"
            raise LockTimeoutError(msg)

        if self._state.depth > 0:
            self._state.depth += 1
            return

        try:
            self._state.token = self._create_marker(deadline)
        except BaseException:
            self._state.rlock.release()
            raise
        self._state.depth = 1

        if self._on_acquire is not None:
            try:
                self._on_acquire()
            except BaseException:
                self.release()
                raise

    def release(self) -> None:
        """Release one level of the lock; the last level removes the marker."""
        if self._state.depth <= 0:
            msg = f"release of unheld write lock {self.path}"
            raise RuntimeError(msg)
        self._state.depth -= 1
        try:
            if self._state.depth == 0:
                self._remove_marker()
        finally:
            self._state.rlock.release()

    @contextmanager
    def held(self) -> Iterator[WriteLock]:
        """Hold the lock for the duration of the block, released on every exit path."""
        self.acquire()
        try:
            yield self
        finally:
            self.release()

    def refresh(self) -> None:
        """Heartbeat: bump the marker's mtime so waiters do not treat it as stale."""
        if self._state.depth > 0:
            try:
                os.utime(self.path)
            except FileNotFoundError:
                logger.warning("lock.marker_missing", path=str(self.path))

    # ------------------------------------------------------------------
    # Marker file
    # ------------------------------------------------------------------

    def _create_marker(self, deadline: float) -> str:
        token = uuid.uuid4().hex
        delay = self.config.poll_interval
        while True:
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if self._break_if_stale():
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    holder = self._read_holder() or {}
                    msg = (
                        f"timed out after {self.config.timeout_seconds:g}s waiting for write "
                        f"lock {self.path} (held by pid {holder.get('pid', '?')})"
                    )
                    raise LockTimeoutError(msg) from None
                time.sleep(min(delay, remaining))
                delay = min(delay * 2, self.config.max_poll_interval)
                continue
            except OSError as exc:
                msg = f"cannot create lock file {self.path}: {exc.strerror or exc}"
                raise StorageError(msg) from exc

            holder = {
                "pid": os.getpid(),
                "host": socket.gethostname(),
                "token": token,
                "acquired_at": datetime.now(UTC).isoformat(),
            }
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(holder, fh)
            logger.debug("lock.acquired", path=str(self.path), pid=holder["pid"])
            return token

    def _read_holder(self) -> dict[str, Any] | None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return data if isinstance(data, dict) else None

    def _break_if_stale(self) -> bool:
        """Remove a stale marker. True if the caller should retry immediately."""
        try:
            before = self.path.stat()
        except FileNotFoundError:
            return True

        holder = self._read_holder()
        age = time.time() - before.st_mtime
        reason: str | None = None
        if age > self.config.stale_seconds:
            reason = "expired"
        elif (
            holder
            and holder.get("host") == socket.gethostname()
            and isinstance(holder.get("pid"), int)
            and not _pid_alive(holder["pid"])
        ):
            reason = "holder process is gone"
        if reason is None:
            return False

        # Move the marker aside atomically, then confirm it is the one inspected.
        tombstone = self.path.with_name(f"{LOCK_FILENAME}.stale-{uuid.uuid4().hex}")
        try:
            os.rename(self.path, tombstone)
        except FileNotFoundError:
            return True
        except OSError as exc:
            msg = f"cannot remove stale lock file {self.path}: {exc.strerror or exc}"
            raise StorageError(msg) from exc

        try:
            moved = tombstone.stat()
            if (moved.st_ino, moved.st_mtime_ns) != (before.st_ino, before.st_mtime_ns):
                self._restore_marker(tombstone)
                return True
            tombstone.unlink()
        except OSError as exc:
            msg = f"cannot remove stale lock file {tombstone}: {exc.strerror or exc}"
            raise StorageError(msg) from exc

        logger.warning(
            "lock.stale_broken",
            path=str(self.path),
            reason=reason,
            age_seconds=round(age, 1),
            holder_pid=(holder or {}).get("pid"),
        )
        return True

    def _restore_marker(self, tombstone: Path) -> None:
        """Put back a live marker that was moved aside by mistake."""
        try:
            os.link(tombstone, self.path)
        except FileExistsError:
            logger.warning(
                "lock.restore_failed",
                path=str(self.path),
                detail="a newer marker already took its place",
            )
        tombstone.unlink()
        logger.debug("lock.marker_restored", path=str(self.path))

    def _remove_marker(self) -> None:
        token, self._state.token = self._state.token, None
        holder = self._read_holder()
        if holder is not None and holder.get("token") != token:
            logger.warning(
                "lock.lost",
                path=str(self.path),
                detail="marker was broken as stale and re-acquired by another holder",
            )
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning("lock.marker_missing", path=str(self.path))
        logger.debug("lock.released", path=str(self.path))
