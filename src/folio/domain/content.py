"""Document model plus frontmatter parsing and rendering.

A document on disk is a ``---`` delimited YAML frontmatter block followed
by a Markdown body. Metadata keys starting with ``_`` are system fields;
``_id`` and ``_created_at`` are the only ones folio writes, and they are
always emitted first. Every other key follows in alphabetical order.

Pure parsing utilities live here so that the dependency direction stays
clean: infrastructure -> domain, never the reverse.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from io import StringIO
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from folio.config.models import RESERVED_FIELD_PREFIX
from folio.domain.ids import short_id
from folio.domain.slug import strip_md
from folio.errors import SchemaError

# ---------------------------------------------------------------------------
# System fields
# ---------------------------------------------------------------------------

FIELD_ID = "_id"
FIELD_CREATED_AT = "_created_at"
SYSTEM_FIELDS: tuple[str, ...] = (FIELD_ID, FIELD_CREATED_AT)

_FRONTMATTER_DELIMITER = "---"


def is_reserved_field(name: str) -> bool:
    return name.startswith(RESERVED_FIELD_PREFIX)


def check_reserved_fields(names: Any, *, action: str = "set") -> None:
    """Reject any externally supplied field name using the reserved prefix.

    Raises:
        SchemaError: At least one name starts with ``_``.
    """
    reserved = sorted(name for name in names if is_reserved_field(name))
    if reserved:
        msg = f"cannot {action} reserved field(s): {', '.join(reserved)}"
        raise SchemaError(msg)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


@dataclass
class Document:
    """A document's parsed state.

    ``path`` is the repository-relative path of the flat ``.md`` file or,
    for folder documents, of the directory holding the index file.
    """

    path: str
    metadata: dict[str, Any] = field(default_factory=dict)
    content: str = ""
    is_folder: bool = False

    @property
    def id(self) -> str:
        return str(self.metadata.get(FIELD_ID) or "")

    @property
    def collection(self) -> str:
        return collection_of(self.path)


def collection_of(path: str) -> str:
    """The first segment of a repository-relative path."""
    return path.split("/", 1)[0]


# ---------------------------------------------------------------------------
# YAML parser
# ---------------------------------------------------------------------------


def _new_yaml() -> YAML:
    """Create a fresh round-trip YAML parser.

    ruamel.yaml's YAML object is stateful; a failed dump can leave a shared
    instance broken, so every call gets its own.
    """
    y = YAML()
    y.default_flow_style = False
    y.width = 4096
    return y


def _to_plain(value: Any) -> Any:
    """Convert ruamel containers and timestamps into plain Python values.

    Dates and datetimes become ISO strings so metadata always round-trips
    as the text the author wrote.
    """
    if isinstance(value, dict):
        return {str(k): _to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    if isinstance(value, datetime):
        text = value.isoformat()
        return text[:-6] + "Z" if text.endswith("+00:00") else text
    if isinstance(value, date):
        return value.isoformat()
    # ruamel returns str/int/float subclasses that carry formatting state.
    if isinstance(value, bool):
        return bool(value)
    if isinstance(value, str):
        return str(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    return value


def load_yaml(text: str) -> Any:
    """Parse YAML into plain dicts, lists and scalars.

    Raises:
        ValueError: The text is not valid YAML.
    """
    try:
        return _to_plain(_new_yaml().load(text))
    except YAMLError as exc:
        raise ValueError(str(exc)) from exc


def dump_yaml(data: Any) -> str:
    buf = StringIO()
    _new_yaml().dump(data, buf)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Pure parsing / rendering utilities
# ---------------------------------------------------------------------------


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter and body from markdown content.

    Returns:
        A ``(metadata, body)`` tuple. If no frontmatter delimiters are
        found, returns ``({}, content)``.

    Raises:
        ValueError: The frontmatter block is not a YAML mapping.
    """
    normalized = content.replace("\r\n", "\n")
    lines = normalized.split("\n")
    if not lines or lines[0].strip() != _FRONTMATTER_DELIMITER:
        return {}, content

    end_idx: int | None = None
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == _FRONTMATTER_DELIMITER:
            end_idx = i
            break

    if end_idx is None:
        return {}, content

    yaml_block = "\n".join(lines[1:end_idx])
    body = "\n".join(lines[end_idx + 1 :])
    if body.startswith("\n"):
        body = body[1:]

    try:
        loaded = load_yaml(yaml_block)
    except ValueError as exc:
        msg = f"invalid frontmatter: {exc}"
        raise ValueError(msg) from exc
    if loaded is None:
        return {}, body
    if not isinstance(loaded, dict):
        msg = "invalid frontmatter: expected a mapping"
        raise ValueError(msg)
    return loaded, body


def order_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """System fields first, then the rest alphabetically; ``None`` dropped."""
    ordered: dict[str, Any] = {}
    for key in SYSTEM_FIELDS:
        if metadata.get(key) is not None:
            ordered[key] = metadata[key]
    for key in sorted(metadata):
        if key not in ordered and metadata[key] is not None:
            ordered[key] = metadata[key]
    return ordered


def render_frontmatter(metadata: dict[str, Any], body: str) -> str:
    """Render metadata and body into document text.

    Empty metadata yields the body alone. A blank line separates the
    closing delimiter from a body that does not already start with one.
    """
    ordered = order_metadata(metadata)
    if not ordered:
        return body
    parts = [_FRONTMATTER_DELIMITER, "\n", dump_yaml(ordered), _FRONTMATTER_DELIMITER, "\n"]
    if body and not body.startswith("\n"):
        parts.append("\n")
    parts.append(body)
    return "".join(parts)


def parse_document(raw: str, path: str, *, is_folder: bool = False) -> Document:
    metadata, body = parse_frontmatter(raw)
    return Document(path=path, metadata=metadata, content=body, is_folder=is_folder)


def render_document(document: Document) -> str:
    return render_frontmatter(document.metadata, document.content)


# ---------------------------------------------------------------------------
# Titles and display names
# ---------------------------------------------------------------------------

_HEADING_RE = re.compile(r"^#{1,6}[ \t]+(.+?)(?:[ \t]+#+[ \t]*)?$")

_FALLBACK_NAME_FIELDS = ("name", "_title", "title", "subject", "summary")


def extract_title(content: str) -> str:
    """The text of the first non-empty line if it is a Markdown heading."""
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        match = _HEADING_RE.match(stripped)
        return match.group(1).strip() if match else ""
    return ""


def display_name(
    document: Document,
    *,
    slug_fields: list[str] | None = None,
    short_id_length: int = 6,
    title_field: str | None = None,
    index_file: str = "index.md",
) -> str:
    """Best human-readable name for *document*.

    Tries, in order: the schema's ``title_field``, the slug template's
    fields, common name fields, the first heading, the filename, the
    short id, and finally ``"Untitled"``.
    """
    candidates: list[str] = []
    if title_field:
        candidates.append(title_field)
    candidates.extend(f for f in slug_fields or [] if f not in ("short_id", "date"))
    candidates.extend(_FALLBACK_NAME_FIELDS)
    for name in candidates:
        value = document.metadata.get(name)
        if isinstance(value, str) and value:
            return value

    heading = extract_title(document.content)
    if heading:
        return heading

    basename = document.path.rstrip("/").rsplit("/", 1)[-1]
    if basename and basename != index_file:
        name = strip_md(basename)
        if name:
            return name

    sid = short_id(document.id, short_id_length)
    return sid or "Untitled"
