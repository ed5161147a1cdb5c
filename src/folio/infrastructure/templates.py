"""Jinja2 rendering for slug templates and template-collection bodies.

Templates use ``{{ field }}`` and ``{{ field | filter }}`` against a flat
map of strings. Rendering is sandboxed and strict: a placeholder with no
value is an error, never an empty string.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from jinja2 import StrictUndefined, Template, TemplateError as JinjaTemplateError
from jinja2.sandbox import SandboxedEnvironment

from folio.errors import TemplateError

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)")


def _date_part(start: int, end: int, name: str) -> Any:
    def _filter(value: Any) -> str:
        text = str(value)
        if len(text) < end:
            msg = f"cannot extract {name} from value: {text!r}"
            raise TemplateError(msg)
        return text[start:end]

    return _filter


def build_template_environment() -> SandboxedEnvironment:
    """Build the sandboxed environment with folio's filters registered."""
    env = SandboxedEnvironment(
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["year"] = _date_part(0, 4, "year")
    env.filters["month"] = _date_part(5, 7, "month")
    env.filters["day"] = _date_part(8, 10, "day")
    return env


_ENV = build_template_environment()


@lru_cache(maxsize=256)
def _compile(source: str) -> Template:
    return _ENV.from_string(source)


def render_template(source: str, values: dict[str, Any]) -> str:
    """Render *source* against *values*.

    Raises:
        TemplateError: Syntax error, unknown filter, or missing field.
    """
    try:
        return _compile(source).render(values)
    except TemplateError:
        raise
    except JinjaTemplateError as exc:
        msg = f"template error: {exc.message or exc}"
        raise TemplateError(msg) from exc


def extract_placeholders(source: str) -> list[str]:
    """Field names used by *source*, in first-appearance order."""
    names: list[str] = []
    for match in _PLACEHOLDER_RE.finditer(source):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names
