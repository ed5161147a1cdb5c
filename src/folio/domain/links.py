"""Link extraction: body wiki links and attachment references.

Pure functions, no infrastructure dependencies. Wiki links take the forms
``[[id]]``, ``[[id:Title]]`` and ``[[collection/id:Title]]``; attachment
references are the file names a folder document's body points at.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

_WIKILINK_PATTERN = re.compile(r"\[\[([^\]]*)\]\]")

MAX_WIKILINK_LENGTH = 200


@dataclass(frozen=True)
class WikiLink:
    """A wiki link found in body text."""

    raw: str  # text between [[ ]], trimmed
    id_token: str = ""
    title: str | None = None
    collection_prefix: str | None = None
    invalid_reason: str | None = None

    @property
    def lookup(self) -> str:
        """Id input for repository lookup, scoped when a prefix is present."""
        if self.collection_prefix:
            return f"{self.collection_prefix}/{self.id_token}"
        return self.id_token

    def render(self, title: str | None = None) -> str:
        prefix = f"{self.collection_prefix}/" if self.collection_prefix else ""
        label = self.title if title is None else title
        suffix = f":{label}" if label else ""
        return f"[[{prefix}{self.id_token}{suffix}]]"


def parse_wikilink(inner: str) -> WikiLink:
    """Parse the text between ``[[`` and ``]]``."""
    inner = inner.strip()
    if not inner:
        return WikiLink(raw=inner, invalid_reason="empty or malformed wiki link")
    if len(inner) > MAX_WIKILINK_LENGTH:
        return WikiLink(
            raw=inner, invalid_reason=f"wiki link exceeds {MAX_WIKILINK_LENGTH} characters"
        )
    if "[[" in inner or "]]" in inner or "[" in inner:
        return WikiLink(raw=inner, invalid_reason="nested brackets are not allowed")

    target, _, title = inner.partition(":")
    target = target.strip()
    prefix: str | None = None
    token = target
    if "/" in target:
        prefix, token = target.split("/", 1)
        prefix = prefix.strip() or None
    token = token.strip()
    if not token:
        return WikiLink(raw=inner, invalid_reason="wiki link id is empty")
    return WikiLink(
        raw=inner,
        id_token=token,
        title=title.strip() or None,
        collection_prefix=prefix,
    )


def extract_wikilinks(body: str) -> list[WikiLink]:
    """Extract every ``[[...]]`` link from *body*, valid or not."""
    return [parse_wikilink(m.group(1)) for m in _WIKILINK_PATTERN.finditer(body)]


def rewrite_wikilink_titles(
    body: str,
    expected_title: Callable[[WikiLink], str | None],
) -> tuple[str, bool]:
    """Rewrite titled links whose title differs from *expected_title*.

    *expected_title* returns the current display name for a link's target,
    or ``None`` when the target cannot be resolved (such links are left
    alone). Untitled and invalid links are never touched.

    Returns:
        ``(new_body, changed)``.
    """
    changed = False

    def _replace(match: re.Match[str]) -> str:
        nonlocal changed
        link = parse_wikilink(match.group(1))
        if link.invalid_reason or not link.title:
            return match.group(0)
        expected = expected_title(link)
        if expected is None or expected == link.title:
            return match.group(0)
        changed = True
        return link.render(expected)

    return _WIKILINK_PATTERN.sub(_replace, body), changed


# ---------------------------------------------------------------------------
# Attachment references
# ---------------------------------------------------------------------------

_INLINE_LINK_RE = re.compile(r"!?\[[^\]]*\]\(([^)]+)\)")
_REFERENCE_LINK_RE = re.compile(r"^\[[^\]]+\]:\s*(\S+)", re.MULTILINE)
_IMG_TAG_RE = re.compile(r"<img\s[^>]*src=\"([^\"]+)\"", re.IGNORECASE)


def _attachment_name(target: str) -> str:
    target = target.strip().strip("<>")
    # [text](file.png "title")
    target = target.split(" ", 1)[0]
    if target.startswith("./"):
        target = target[2:]
    target = target.split("?", 1)[0].split("#", 1)[0]
    return target.rstrip("/").rsplit("/", 1)[-1]


def extract_attachment_references(body: str) -> set[str]:
    """File names linked from *body* via Markdown links, reference links, or ``<img>``."""
    refs: set[str] = set()
    for pattern in (_INLINE_LINK_RE, _REFERENCE_LINK_RE, _IMG_TAG_RE):
        for match in pattern.finditer(body):
            name = _attachment_name(match.group(1))
            if name:
                refs.add(name)
    return refs


def attachment_link(name: str) -> str:
    """Markdown link appended to a body after attaching *name*."""
    return f"[{name}]({name})"
