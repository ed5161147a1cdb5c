"""Document identifiers and id lookup rules.

Ids are lowercase ULIDs assigned once at creation. A document is addressed
by any prefix of its id, by a prefix of one of its short ids (any suffix of
length 4..16), or by the id segment of its filename.

INVARIANT: ``_id`` never changes after creation.
"""

from __future__ import annotations

from ulid import ULID

from folio.domain.slug import strip_md
from folio.errors import NotFoundError

MIN_SHORT_ID = 4
MAX_SHORT_ID = 16


def new_id() -> str:
    """Generate a fresh lowercase ULID."""
    return str(ULID()).lower()


def short_id(doc_id: str, length: int) -> str:
    """The last *length* characters of *doc_id* (the whole id if shorter)."""
    return doc_id[-length:] if len(doc_id) >= length else doc_id


def split_id_input(raw: str) -> tuple[str | None, str]:
    """Split ``partial`` or ``collection/partial`` into ``(scope, partial)``.

    Raises:
        NotFoundError: Empty input, or an empty side of the ``/``.
    """
    text = raw.strip()
    if not text:
        msg = "document id must not be empty"
        raise NotFoundError(msg)
    if "/" not in text:
        return None, text
    scope, partial = text.split("/", 1)
    if not scope or not partial:
        msg = f"invalid id format: {raw}"
        raise NotFoundError(msg)
    return scope, partial


def matches_id(doc_id: str, needle: str) -> bool:
    """True if *needle* is a prefix of the id or of one of its short ids."""
    doc_id = doc_id.lower()
    needle = needle.lower()
    if not doc_id or not needle:
        return False
    if doc_id.startswith(needle):
        return True
    for n in range(MIN_SHORT_ID, MAX_SHORT_ID + 1):
        if len(doc_id) >= n and doc_id[-n:].startswith(needle):
            return True
    return False


def matches_filename(path: str, needle: str) -> bool:
    """True if the basename segment before the first hyphen starts with *needle*."""
    needle = needle.lower()
    if not needle:
        return False
    basename = strip_md(path.rstrip("/").rsplit("/", 1)[-1]).lower()
    head = basename.split("-", 1)[0]
    return bool(head) and head.startswith(needle)
