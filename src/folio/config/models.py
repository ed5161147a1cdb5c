"""Pydantic configuration models with code-baked defaults.

Two files feed these models:

- ``folio.yaml`` at the repository root -> :class:`RepoConfig`
  (plus the optional ``settings:`` block read by
  :class:`~folio.config.settings.FolioSettings`).
- ``<collection>/_schema.yaml`` -> :class:`CollectionSchema`.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from folio.domain.fields import FieldKind, normalize_value, parse_field_type, validate_value

DEFAULT_SHORT_ID_LENGTH = 6
MIN_SHORT_ID_LENGTH = 4
MAX_SHORT_ID_LENGTH = 16
DEFAULT_INDEX_FILE = "index.md"
DEFAULT_IGNORE = [".DS_Store", "Thumbs.db"]

RESERVED_COLLECTION_NAMES = frozenset({"all", "none", "default"})
COLLECTION_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

# Any metadata key with this prefix belongs to the system.
RESERVED_FIELD_PREFIX = "_"
FIELD_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
# Names that slug templates would read as literals or operators.
TEMPLATE_KEYWORDS = frozenset(
    {"and", "or", "not", "in", "is", "if", "else", "true", "false", "none", "True", "False", "None"}
)


# --- folio.yaml ---


class LockConfig(BaseModel):
    """``settings.lock`` section: write lock timing."""

    model_config = {"frozen": True}

    timeout_seconds: float = 10.0
    stale_seconds: float = 60.0
    poll_interval: float = 0.05
    max_poll_interval: float = 0.5


class RepoConfig(BaseModel):
    """Repository marker contents (``folio.yaml``)."""

    model_config = {"frozen": True}

    repository_id: str | None = None
    aliases: dict[str, str] = Field(default_factory=dict)
    ignore: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE))
    # Unknown keys are carried through rewrites untouched.
    extra: dict[str, Any] = Field(default_factory=dict)


# --- _schema.yaml ---


class FieldDefinition(BaseModel):
    """One entry of a schema's ``fields:`` map."""

    model_config = {"frozen": True}

    type: str = "string"
    required: bool = False
    default: Any = None
    enum_values: list[str] = Field(default_factory=list)
    pattern: str | None = None
    min: float | None = None
    max: float | None = None
    weight: int | None = None
    description: str | None = None

    @field_validator("type")
    @classmethod
    def _check_type(cls, v: str) -> str:
        parse_field_type(v)
        return v.strip().lower()

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                re.compile(v)
            except re.error as exc:
                msg = f"invalid pattern: {exc}"
                raise ValueError(msg) from exc
        return v

    @model_validator(mode="after")
    def _check_default(self) -> FieldDefinition:
        if self.default is not None:
            err = validate_value(normalize_value(self.default, self), self)
            if err:
                msg = f"default {self.default!r} is invalid: {err}"
                raise ValueError(msg)
        return self

    @property
    def kind(self) -> FieldKind:
        return parse_field_type(self.type)[0]

    @property
    def item_kind(self) -> FieldKind | None:
        return parse_field_type(self.type)[1]

    def default_value(self) -> Any:
        """The default in stored form (date shorthands resolved)."""
        return normalize_value(self.default, self)


class CollectionSchema(BaseModel):
    """A collection's ``_schema.yaml``."""

    model_config = {"frozen": True}

    slug: str
    fields: dict[str, FieldDefinition] = Field(default_factory=dict)
    references: dict[str, str] = Field(default_factory=dict)
    short_id_length: int = Field(
        default=DEFAULT_SHORT_ID_LENGTH, ge=MIN_SHORT_ID_LENGTH, le=MAX_SHORT_ID_LENGTH
    )
    title_field: str | None = None
    index_file: str = DEFAULT_INDEX_FILE

    @field_validator("slug")
    @classmethod
    def _check_slug(cls, v: str) -> str:
        if not v.strip():
            msg = "slug template must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("fields")
    @classmethod
    def _check_field_names(cls, v: dict[str, FieldDefinition]) -> dict[str, FieldDefinition]:
        for name in v:
            problem = validate_field_name(name)
            if problem:
                raise ValueError(problem)
        return v

    @field_validator("index_file")
    @classmethod
    def _check_index_file(cls, v: str) -> str:
        if not v or "/" in v or v.startswith("."):
            msg = f"invalid index_file: {v!r}"
            raise ValueError(msg)
        return v

    @property
    def has_index_override(self) -> bool:
        """True when ``index_file`` was set explicitly in the schema file."""
        return "index_file" in self.model_fields_set


def default_slug(fields: dict[str, FieldDefinition] | None = None) -> str:
    """Slug template for a new collection with no explicit one."""
    for candidate in ("title", "name", "subject"):
        if fields and candidate in fields:
            return f"{{{{short_id}}}}-{{{{{candidate}}}}}"
    return "{{short_id}}"


def validate_collection_name(name: str) -> str | None:
    if not COLLECTION_NAME_RE.match(name):
        return f"invalid collection name '{name}': use letters, digits, '-' or '_'"
    if name.lower() in RESERVED_COLLECTION_NAMES:
        return f"collection name '{name}' is reserved"
    return None


def validate_field_name(name: str) -> str | None:
    if name.startswith(RESERVED_FIELD_PREFIX):
        return f"field name '{name}' uses the reserved '{RESERVED_FIELD_PREFIX}' prefix"
    if not FIELD_NAME_RE.match(name):
        return f"invalid field name '{name}': use letters, digits or '_', starting with a letter"
    if name in TEMPLATE_KEYWORDS:
        return f"field name '{name}' is reserved in slug templates"
    return None
