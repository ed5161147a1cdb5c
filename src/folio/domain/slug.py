"""Slug and filename generation.

A slug is the human-readable part of a document's derived filename. Every
value fed into a slug template is slugified on its own, and the rendered
result is slugified again per path segment.
"""

from __future__ import annotations

import re

from folio.errors import PathError

MD_SUFFIX = ".md"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_MULTI_HYPHEN_RE = re.compile(r"-{2,}")


def slugify(value: str) -> str:
    """Lowercase, turn non ``[a-z0-9]`` runs into one hyphen, trim hyphens."""
    text = value.lower().replace("/", "-")
    text = _NON_ALNUM_RE.sub("-", text)
    text = _MULTI_HYPHEN_RE.sub("-", text)
    return text.strip("-")


def strip_md(path: str) -> str:
    return path[: -len(MD_SUFFIX)] if path.endswith(MD_SUFFIX) else path


def generate_filename(rendered: str) -> str:
    """Slugify each ``/`` segment of *rendered* and append ``.md``.

    Raises:
        PathError: A segment slugifies to nothing, or the basename would
            be dot-prefixed (reserved for drafts).
    """
    segments = [slugify(segment) for segment in strip_md(rendered).split("/")]
    if any(not segment for segment in segments):
        msg = f"slug renders an empty path segment: {rendered!r}"
        raise PathError(msg)
    result = "/".join(segments) + MD_SUFFIX
    if result.rsplit("/", 1)[-1].startswith("."):
        msg = "generated filename must not start with '.'"
        raise PathError(msg)
    return result


def append_short_id(rendered: str, short_id: str) -> str:
    """Append ``-<short_id>`` to the last segment unless it already ends with it."""
    suffix = slugify(short_id)
    if not suffix:
        return rendered
    had_md = rendered.endswith(MD_SUFFIX)
    segments = strip_md(rendered).split("/")
    last = segments[-1]
    if last == suffix or last.endswith(f"-{suffix}"):
        return rendered
    segments[-1] = f"{last}-{suffix}" if last else suffix
    rebuilt = "/".join(segments)
    return rebuilt + MD_SUFFIX if had_md else rebuilt
