"""Field kinds: one validate and one normalize function per kind.

The set of kinds is closed. A schema's ``type:`` string is parsed into a
:class:`FieldKind` (plus an item kind for ``array<T>``) when the schema is
loaded, and every later lookup goes through :data:`FIELD_RULES`. Adding a
kind means adding an enum member and a :class:`FieldRule`, nothing else.

- ``validate(value, definition)`` returns ``None`` or a short message.
- ``normalize(value, definition)`` converts user input (CLI strings, date
  shorthands, boolean tokens) into the stored form. It never raises; input
  it cannot normalize is returned unchanged so validation reports it.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

if TYPE_CHECKING:
    from folio.config.models import FieldDefinition


class FieldKind(StrEnum):
    STRING = "string"
    EMAIL = "email"
    CURRENCY = "currency"
    COUNTRY = "country"
    DATE = "date"
    DATETIME = "datetime"
    NUMBER = "number"
    ENUM = "enum"
    ARRAY = "array"
    BOOLEAN = "boolean"
    URL = "url"
    REFERENCE = "reference"


# Kinds whose values are fixed-length uppercase codes; fix mode upper-cases them.
CODE_KINDS = frozenset({FieldKind.CURRENCY, FieldKind.COUNTRY})

_ARRAY_TYPE_RE = re.compile(r"^array\s*<\s*([a-z]+)\s*>$")


def parse_field_type(raw: str) -> tuple[FieldKind, FieldKind | None]:
    """Parse ``"string"`` or ``"array<email>"`` into ``(kind, item_kind)``.

    Raises:
        ValueError: Unknown kind, or a nested array.
    """
    text = raw.strip().lower()
    match = _ARRAY_TYPE_RE.match(text)
    if match:
        item = FieldKind(match.group(1))
        if item is FieldKind.ARRAY:
            msg = "nested arrays are not supported"
            raise ValueError(msg)
        return FieldKind.ARRAY, item
    return FieldKind(text), None


# ---------------------------------------------------------------------------
# Date input shorthands
# ---------------------------------------------------------------------------

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_OFFSET_RE = re.compile(r"^[+-]\d+$")
_RFC3339_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})$")

_NAMED_OFFSETS = {"today": 0, "yesterday": -1, "tomorrow": 1}


def utc_today() -> date:
    return datetime.now(UTC).date()


def normalize_date_input(value: str, *, today: date | None = None) -> str:
    """Resolve ``YYYY-MM-DD``, ``today``, ``yesterday``, ``tomorrow`` or ``+N``/``-N``.

    Raises:
        ValueError: The input is none of the above.
    """
    trimmed = value.strip()
    if _DATE_RE.match(trimmed):
        return trimmed
    lower = trimmed.lower()
    base = today or utc_today()
    if lower in _NAMED_OFFSETS:
        return (base + timedelta(days=_NAMED_OFFSETS[lower])).isoformat()
    if _OFFSET_RE.match(lower):
        return (base + timedelta(days=int(lower))).isoformat()
    msg = f"invalid date input: {value}"
    raise ValueError(msg)


def normalize_datetime_input(value: str, *, today: date | None = None) -> str:
    """Keep RFC 3339 timestamps; turn any date input into midnight UTC."""
    trimmed = value.strip()
    if _RFC3339_RE.match(trimmed) and _parse_datetime(trimmed) is not None:
        return trimmed
    return f"{normalize_date_input(trimmed, today=today)}T00:00:00Z"


def _parse_datetime(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")

TRUE_TOKENS = frozenset({"true", "yes", "y", "on", "1"})
FALSE_TOKENS = frozenset({"false", "no", "n", "off", "0"})


def _validate_string(value: Any, definition: FieldDefinition) -> str | None:
    if not isinstance(value, str):
        return "must be a string"
    if definition.pattern and not re.search(definition.pattern, value):
        return f"must match pattern {definition.pattern}"
    return None


def _validate_email(value: Any, definition: FieldDefinition) -> str | None:
    if isinstance(value, str) and _EMAIL_RE.match(value):
        return None
    return "invalid email format"


def _code_validator(
    regex: re.Pattern[str], label: str
) -> Callable[[Any, FieldDefinition], str | None]:
    def validate(value: Any, definition: FieldDefinition) -> str | None:
        if not isinstance(value, str):
            return "must be a string"
        if not regex.match(value):
            return f"must be uppercase {label}"
        if definition.enum_values and value not in definition.enum_values:
            return "must be one of enum_values"
        return None

    return validate


def _validate_date(value: Any, definition: FieldDefinition) -> str | None:
    if isinstance(value, str) and _DATE_RE.match(value):
        try:
            date.fromisoformat(value)
        except ValueError:
            return "not a calendar date"
        return None
    return "must be YYYY-MM-DD"


def _validate_datetime(value: Any, definition: FieldDefinition) -> str | None:
    if isinstance(value, str) and _parse_datetime(value.strip()) is not None:
        return None
    return "must be RFC3339 string"


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _validate_number(value: Any, definition: FieldDefinition) -> str | None:
    number = _as_number(value)
    if number is None:
        return "must be numeric"
    if definition.min is not None and number < definition.min:
        return f"must be >= {definition.min:g}"
    if definition.max is not None and number > definition.max:
        return f"must be <= {definition.max:g}"
    return None


def _validate_enum(value: Any, definition: FieldDefinition) -> str | None:
    if not isinstance(value, str):
        return "must be a string"
    if not definition.enum_values:
        return "enum_values must be configured"
    lowered = value.lower()
    if any(v.lower() == lowered for v in definition.enum_values):
        return None
    return "must be one of enum_values"


def _validate_array(value: Any, definition: FieldDefinition) -> str | None:
    if not isinstance(value, list):
        return "must be an array"
    item_kind = definition.item_kind
    if item_kind is None:
        return None
    rule = FIELD_RULES[item_kind]
    for index, item in enumerate(value):
        err = rule.validate(item, definition)
        if err:
            return f"item {index}: {err}"
    return None


def _validate_boolean(value: Any, definition: FieldDefinition) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().lower() in TRUE_TOKENS | FALSE_TOKENS:
        return None
    return "must be a boolean"


def _validate_url(value: Any, definition: FieldDefinition) -> str | None:
    if not isinstance(value, str):
        return "must be a string"
    parsed = urlparse(value.strip())
    if parsed.scheme and parsed.netloc:
        return None
    return "must be an absolute URL"


def _validate_reference(value: Any, definition: FieldDefinition) -> str | None:
    if isinstance(value, str) and value.strip():
        return None
    return "must be a document id"


# ---------------------------------------------------------------------------
# Normalizers
# ---------------------------------------------------------------------------


def _keep(value: Any, definition: FieldDefinition) -> Any:
    return value


def _strip(value: Any, definition: FieldDefinition) -> Any:
    return value.strip() if isinstance(value, str) else value


def _normalize_code(value: Any, definition: FieldDefinition) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


def _normalize_date(value: Any, definition: FieldDefinition) -> Any:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    if not isinstance(value, str):
        return value
    try:
        return normalize_date_input(value)
    except ValueError:
        return value


def _normalize_datetime(value: Any, definition: FieldDefinition) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if not isinstance(value, str):
        return value
    try:
        return normalize_datetime_input(value)
    except ValueError:
        return value


def _normalize_boolean(value: Any, definition: FieldDefinition) -> Any:
    if not isinstance(value, str):
        return value
    token = value.strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    return value


def _normalize_array(value: Any, definition: FieldDefinition) -> Any:
    if isinstance(value, str):
        value = [part.strip() for part in re.split(r"[,\n]", value) if part.strip()]
    if not isinstance(value, list) or definition.item_kind is None:
        return value
    rule = FIELD_RULES[definition.item_kind]
    return [rule.normalize(item, definition) for item in value]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldRule:
    validate: Callable[[Any, FieldDefinition], str | None]
    normalize: Callable[[Any, FieldDefinition], Any]


FIELD_RULES: dict[FieldKind, FieldRule] = {
    FieldKind.STRING: FieldRule(_validate_string, _keep),
    FieldKind.EMAIL: FieldRule(_validate_email, _strip),
    FieldKind.CURRENCY: FieldRule(_code_validator(_CURRENCY_RE, "ISO 4217 code"), _normalize_code),
    FieldKind.COUNTRY: FieldRule(
        _code_validator(_COUNTRY_RE, "ISO 3166-1 alpha-2 code"), _normalize_code
    ),
    FieldKind.DATE: FieldRule(_validate_date, _normalize_date),
    FieldKind.DATETIME: FieldRule(_validate_datetime, _normalize_datetime),
    FieldKind.NUMBER: FieldRule(_validate_number, _strip),
    FieldKind.ENUM: FieldRule(_validate_enum, _strip),
    FieldKind.ARRAY: FieldRule(_validate_array, _normalize_array),
    FieldKind.BOOLEAN: FieldRule(_validate_boolean, _normalize_boolean),
    FieldKind.URL: FieldRule(_validate_url, _strip),
    FieldKind.REFERENCE: FieldRule(_validate_reference, _strip),
}


def has_value(value: Any) -> bool:
    """A required field is satisfied by anything except ``None`` and ``""``."""
    if value is None:
        return False
    if isinstance(value, str):
        return len(value) > 0
    return True


def validate_value(value: Any, definition: FieldDefinition) -> str | None:
    return FIELD_RULES[definition.kind].validate(value, definition)


def normalize_value(value: Any, definition: FieldDefinition) -> Any:
    return FIELD_RULES[definition.kind].normalize(value, definition)


def upper_codes(value: Any) -> Any:
    """Upper-case a code value or every string in a list of codes."""
    if isinstance(value, str):
        return value.upper()
    if isinstance(value, list):
        return [v.upper() if isinstance(v, str) else v for v in value]
    return value
