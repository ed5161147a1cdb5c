"""Repository: document discovery, parsing, filtering and id lookup.

Discovery is a two-pass walk over a single traversal of the root:

1. Every ``<collection>/_schema.yaml`` marks ``<collection>`` as known.
2. Candidates are accepted only inside known collections, so a schema
   file that sorts after its documents is still honored.

Within a known collection:

- a directory directly containing the collection's index file is a
  folder document, and nothing beneath it is scanned as a document;
- a file is a flat document iff it ends in ``.md``, is neither the index
  file nor ``README.md``, and is not dot-prefixed (drafts);
- dot-prefixed directories are skipped entirely.

Parsed snapshots are cached per repository id in a shared
:class:`~folio.infrastructure.cache.DocumentCache`. All writes go through
:attr:`Repository.fs`, which invalidates that snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from folio.config.models import DEFAULT_INDEX_FILE, CollectionSchema
from folio.config.schema import SCHEMA_FILENAME
from folio.domain.content import Document, collection_of, parse_document, render_document
from folio.domain.ids import matches_filename, matches_id, split_id_input
from folio.domain.paths import content_path
from folio.errors import AmbiguousIDError, NotFoundError, StorageError
from folio.infrastructure.cache import DocumentCache, InvalidatingFileSystem
from folio.infrastructure.filesystem import FileInfo, FileSystem, parent_of

logger = logging.getLogger(__name__)

TEMPLATES_COLLECTION = "templates"
README_FILENAME = "README.md"


@dataclass
class DocumentRecord:
    """A parsed document plus where it lives and its file metadata."""

    document: Document
    path: str
    info: FileInfo

    @property
    def collection(self) -> str:
        return collection_of(self.path)


@dataclass(frozen=True)
class LoadError:
    """A document file that could not be parsed."""

    path: str
    message: str


@dataclass
class Snapshot:
    records: list[DocumentRecord] = field(default_factory=list)
    errors: list[LoadError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

Filter = Callable[[DocumentRecord], bool]


def by_collection(name: str) -> Filter:
    return lambda record: record.collection == name


def by_field(name: str, value: Any) -> Filter:
    """Metadata equality; list-valued fields match if they contain *value*."""

    def _match(record: DocumentRecord) -> bool:
        current = record.document.metadata.get(name)
        if isinstance(current, list) and not isinstance(value, list):
            return value in current
        return current == value

    return _match


def has_field(name: str) -> Filter:
    return lambda record: record.document.metadata.get(name) not in (None, "")


def not_(inner: Filter) -> Filter:
    return lambda record: not inner(record)


def and_(*filters: Filter) -> Filter:
    return lambda record: all(f(record) for f in filters)


def or_(*filters: Filter) -> Filter:
    return lambda record: any(f(record) for f in filters)


def exclude_templates() -> Filter:
    return not_(by_collection(TEMPLATES_COLLECTION))


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def find_in_records(
    records: Iterable[DocumentRecord],
    id_input: str,
    *,
    resolve_collection: Callable[[str], str] | None = None,
) -> DocumentRecord:
    """Find exactly one record for ``partial`` or ``collection/partial``.

    Raises:
        NotFoundError: Empty or malformed input, or no match.
        AmbiguousIDError: More than one record matches.
    """
    scope, partial = split_id_input(id_input)
    if scope is not None and resolve_collection is not None:
        scope = resolve_collection(scope)

    matches = [
        record
        for record in records
        if (scope is None or record.collection == scope)
        and (
            matches_id(record.document.id, partial) or matches_filename(record.path, partial)
        )
    ]
    if not matches:
        msg = f"no document found for id: {id_input}"
        raise NotFoundError(msg)
    if len(matches) > 1:
        msg = f"multiple documents match id: {id_input}"
        raise AmbiguousIDError(msg, candidates=[m.path for m in matches])
    return matches[0]


def is_document_filename(name: str, index_file: str) -> bool:
    return (
        name.endswith(".md")
        and name != index_file
        and name != README_FILENAME
        and not name.startswith(".")
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class Repository:
    """Document store over a root-bound filesystem.

    Args:
        fs: Filesystem bound to the repository root. It is wrapped so every
            write invalidates this repository's cached snapshot.
        repository_id: Cache key.
        cache: Process-wide cache, shared by reference.
        schemas: Returns the current collection schemas (for index files).
        resolve_collection: Maps an alias to its collection name.
    """

    def __init__(
        self,
        fs: FileSystem,
        *,
        repository_id: str,
        cache: DocumentCache,
        schemas: Callable[[], Mapping[str, CollectionSchema]] | None = None,
        resolve_collection: Callable[[str], str] | None = None,
    ) -> None:
        self.repository_id = repository_id
        self._cache = cache
        self.fs = InvalidatingFileSystem(fs, cache, repository_id)
        self._schemas = schemas or dict
        self._resolve_collection = resolve_collection

    def index_file(self, collection: str) -> str:
        schema = self._schemas().get(collection)
        return schema.index_file if schema else DEFAULT_INDEX_FILE

    # --- reads ---

    def snapshot(self) -> Snapshot:
        snap: Snapshot = self._cache.get(self.repository_id, self._scan)
        return snap

    def collect_all(self, *filters: Filter) -> list[DocumentRecord]:
        """Every document satisfying all *filters*, sorted by path."""
        records = self.snapshot().records
        return [r for r in records if all(f(r) for f in filters)]

    def load_errors(self) -> list[LoadError]:
        return self.snapshot().errors

    def find_by_id(self, id_input: str) -> DocumentRecord:
        return find_in_records(
            self.collect_all(), id_input, resolve_collection=self._resolve_collection
        )

    def invalidate_cache(self) -> None:
        self._cache.invalidate(self.repository_id)

    def load_by_path(self, path: str) -> DocumentRecord:
        """Read the document at *path* directly from disk, bypassing the cache.

        Raises:
            NotFoundError: Nothing exists at *path*.
            StorageError: The file cannot be read or parsed.
        """
        if not self.fs.exists(path):
            msg = f"no document at path: {path}"
            raise NotFoundError(msg)
        is_folder = self.fs.is_dir(path)
        raw = self.fs.read_text(content_path(path, is_folder, self.index_file(collection_of(path))))
        try:
            document = parse_document(raw, path, is_folder=is_folder)
        except ValueError as exc:
            msg = f"{path}: {exc}"
            raise StorageError(msg) from exc
        return DocumentRecord(document=document, path=path, info=self.fs.stat(path))

    # --- writes ---

    def save(self, document: Document) -> None:
        """Write *document* to its content file, creating parent directories."""
        target = content_path(
            document.path, document.is_folder, self.index_file(document.collection)
        )
        parent = parent_of(target)
        if parent:
            self.fs.mkdir_all(parent)
        self.fs.write_text(target, render_document(document))

    def rename(self, old: str, new: str) -> None:
        parent = parent_of(new)
        if parent:
            self.fs.mkdir_all(parent)
        self.fs.rename(old, new)
        logger.info("Renamed %s -> %s", old, new)

    def remove_document(self, document: Document) -> None:
        if document.is_folder:
            self.fs.remove_all(document.path)
        else:
            self.fs.remove(document.path)

    # --- discovery ---

    def _scan(self) -> Snapshot:
        entries = list(self.fs.walk(""))

        # Pass 1: which top-level directories are collections.
        collections = {
            collection_of(e.path)
            for e in entries
            if e.is_file and e.name == SCHEMA_FILENAME and e.path.count("/") == 1
        }
        files = {e.path for e in entries if e.is_file}

        # Pass 2: accept candidates inside known collections.
        snap = Snapshot()
        folder_docs: set[str] = set()
        for entry in entries:
            parts = entry.path.split("/")
            if len(parts) < 2 or parts[0] not in collections:
                continue
            if any(p.startswith(".") for p in parts[1:-1]):
                continue
            if any("/".join(parts[:i]) in folder_docs for i in range(2, len(parts))):
                continue

            index_file = self.index_file(parts[0])
            if entry.is_dir:
                if entry.name.startswith("."):
                    continue
                if f"{entry.path}/{index_file}" in files:
                    folder_docs.add(entry.path)
                    self._load_into(snap, entry, is_folder=True, index_file=index_file)
            elif entry.is_file and is_document_filename(entry.name, index_file):
                self._load_into(snap, entry, is_folder=False, index_file=index_file)

        snap.records.sort(key=lambda r: r.path)
        logger.debug(
            "Scanned %d documents in %d collections", len(snap.records), len(collections)
        )
        return snap

    def _load_into(
        self, snap: Snapshot, entry: FileInfo, *, is_folder: bool, index_file: str
    ) -> None:
        raw = self.fs.read_text(content_path(entry.path, is_folder, index_file))
        try:
            document = parse_document(raw, entry.path, is_folder=is_folder)
        except ValueError as exc:
            logger.warning("Skipping unparsable document %s: %s", entry.path, exc)
            snap.errors.append(LoadError(path=entry.path, message=str(exc)))
            return
        snap.records.append(DocumentRecord(document=document, path=entry.path, info=entry))
