"""Root-bound filesystem access.

INVARIANT: Files are truth. Every read and write of repository state goes
through a :class:`FileSystem` bound to the repository root, using
``/``-separated relative paths. Paths are validated before they touch the
disk: empty, absolute and ``..`` paths are rejected, and symlinks are
refused rather than followed.

``OSError`` from the operating system is re-raised as
:class:`~folio.errors.StorageError` with the original message.
"""

from __future__ import annotations

import os
import shutil
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from folio.errors import PathError, StorageError

# ---------------------------------------------------------------------------
# Path validation
# ---------------------------------------------------------------------------


def normalize_path(path: str, *, allow_root: bool = False) -> str:
    """Validate and canonicalize a repository-relative path.

    ``"a//b/./c"`` becomes ``"a/b/c"``. ``""`` and ``"."`` mean the root and
    are only accepted with *allow_root*.

    Raises:
        PathError: Empty (without *allow_root*), absolute, or contains ``..``.
    """
    text = path.replace("\\", "/").strip()
    if text.startswith("/") or (len(text) > 1 and text[1] == ":"):
        msg = f"path must be relative: {path!r}"
        raise PathError(msg)
    segments = [s for s in text.split("/") if s not in ("", ".")]
    if any(s == ".." for s in segments):
        msg = f"path must not contain '..': {path!r}"
        raise PathError(msg)
    if not segments:
        if allow_root:
            return ""
        msg = "path must not be empty"
        raise PathError(msg)
    return "/".join(segments)


def parent_of(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def basename_of(path: str) -> str:
    return path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class FileInfo:
    """Metadata for one directory entry."""

    name: str
    path: str
    is_dir: bool
    is_file: bool
    size: int
    modified_at: datetime


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class FileSystem(Protocol):
    """Relative-path filesystem interface used by the repository and services."""

    def read_text(self, path: str) -> str: ...
    def read_bytes(self, path: str) -> bytes: ...
    def write_text(self, path: str, content: str) -> None: ...
    def write_bytes(self, path: str, data: bytes) -> None: ...
    def exists(self, path: str) -> bool: ...
    def is_dir(self, path: str) -> bool: ...
    def is_file(self, path: str) -> bool: ...
    def stat(self, path: str) -> FileInfo: ...
    def mkdir_all(self, path: str) -> None: ...
    def remove(self, path: str) -> None: ...
    def remove_all(self, path: str) -> None: ...
    def rename(self, old: str, new: str) -> None: ...
    def walk(self, path: str = "") -> Iterator[FileInfo]: ...
    def read_dir(self, path: str = "") -> list[FileInfo]: ...


@contextmanager
def _os_errors(action: str, path: str) -> Iterator[None]:
    try:
        yield
    except StorageError:
        raise
    except OSError as exc:
        msg = f"{action} {path}: {exc.strerror or exc}"
        raise StorageError(msg) from exc


# ---------------------------------------------------------------------------
# Disk implementation
# ---------------------------------------------------------------------------


class DiskFileSystem:
    """:class:`FileSystem` over a real directory."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    def __repr__(self) -> str:
        return f"DiskFileSystem({str(self.root)!r})"

    def _abs(self, path: str, *, allow_root: bool = False) -> tuple[str, Path]:
        rel = normalize_path(path, allow_root=allow_root)
        current = self.root
        for segment in rel.split("/") if rel else []:
            current = current / segment
            if current.is_symlink():
                msg = f"symlink encountered: {rel}"
                raise StorageError(msg)
        return rel, current

    def _info(self, rel: str, target: Path) -> FileInfo:
        st = target.stat()
        return FileInfo(
            name=target.name,
            path=rel,
            is_dir=target.is_dir(),
            is_file=target.is_file(),
            size=st.st_size,
            modified_at=datetime.fromtimestamp(st.st_mtime, tz=UTC),
        )

    # --- reads ---

    def read_text(self, path: str) -> str:
        rel, target = self._abs(path)
        with _os_errors("read", rel):
            return target.read_text(encoding="utf-8")

    def read_bytes(self, path: str) -> bytes:
        rel, target = self._abs(path)
        with _os_errors("read", rel):
            return target.read_bytes()

    def exists(self, path: str) -> bool:
        return self._abs(path, allow_root=True)[1].exists()

    def is_dir(self, path: str) -> bool:
        return self._abs(path, allow_root=True)[1].is_dir()

    def is_file(self, path: str) -> bool:
        return self._abs(path)[1].is_file()

    def stat(self, path: str) -> FileInfo:
        rel, target = self._abs(path, allow_root=True)
        with _os_errors("stat", rel):
            return self._info(rel, target)

    def read_dir(self, path: str = "") -> list[FileInfo]:
        """Sorted entries of a directory, symlinks skipped."""
        rel, target = self._abs(path, allow_root=True)
        with _os_errors("read directory", rel or "."):
            children = sorted(target.iterdir(), key=lambda p: p.name)
            return [
                self._info(f"{rel}/{child.name}" if rel else child.name, child)
                for child in children
                if not child.is_symlink()
            ]

    def walk(self, path: str = "") -> Iterator[FileInfo]:
        """Pre-order, depth-first, sorted traversal below *path*."""
        for entry in self.read_dir(path):
            yield entry
            if entry.is_dir:
                yield from self.walk(entry.path)

    # --- writes ---

    def write_text(self, path: str, content: str) -> None:
        self.write_bytes(path, content.encode("utf-8"))

    def write_bytes(self, path: str, data: bytes) -> None:
        """Atomic write: temp file in the same directory, then replace."""
        rel, target = self._abs(path)
        tmp = target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.tmp")
        with _os_errors("write", rel):
            try:
                tmp.write_bytes(data)
                os.replace(tmp, target)
            finally:
                tmp.unlink(missing_ok=True)

    def mkdir_all(self, path: str) -> None:
        rel, target = self._abs(path, allow_root=True)
        with _os_errors("create directory", rel):
            target.mkdir(parents=True, exist_ok=True)

    def remove(self, path: str) -> None:
        """Remove a file or an empty directory."""
        rel, target = self._abs(path)
        with _os_errors("remove", rel):
            if target.is_dir():
                target.rmdir()
            else:
                target.unlink()

    def remove_all(self, path: str) -> None:
        """Remove a file or a directory tree; missing paths are ignored."""
        rel, target = self._abs(path)
        with _os_errors("remove", rel):
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()

    def rename(self, old: str, new: str) -> None:
        """Move *old* to *new*; the destination must not exist."""
        old_rel, source = self._abs(old)
        new_rel, dest = self._abs(new)
        if dest.exists():
            msg = f"rename {old_rel} -> {new_rel}: destination already exists"
            raise StorageError(msg)
        with _os_errors("rename", old_rel):
            os.rename(source, dest)
