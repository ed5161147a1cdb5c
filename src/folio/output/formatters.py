"""Plain-text and JSON rendering of a ServiceResult.

JSON mode dumps the whole result. Human mode prints ``OK: <op>`` followed
by the payload as indented key/value lines; issue lists and multi-line
bodies get one line per entry so they stay greppable.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from folio.services.result import ServiceResult

_BLOCK_KEYS = ("content", "raw")


def format_issue(issue: dict[str, Any]) -> str:
    return f"{issue['severity']} {issue['path']}: {issue['code']}: {issue['message']}"


def _format_data_human(data: dict[str, Any]) -> str:
    lines: list[str] = []
    for key, value in data.items():
        if key == "issues" and isinstance(value, list):
            lines.append(f"  {key}:")
            lines.extend(f"    {format_issue(issue)}" for issue in value)
        elif key == "items" and isinstance(value, list):
            lines.append(f"  {key}:")
            lines.extend(f"    {item.get('path', item)}" for item in value)
        elif key in _BLOCK_KEYS and isinstance(value, str) and "\n" in value:
            lines.append(f"  {key}: |")
            lines.extend(f"    {line}" for line in value.rstrip("\n").split("\n"))
        elif isinstance(value, (dict, list)):
            lines.append(f"  {key}: {_json.dumps(value, separators=(',', ':'), default=str)}")
        else:
            lines.append(f"  {key}: {value}")
    return "\n".join(lines)


def format_result(result: ServiceResult, *, json_output: bool = False) -> str:
    """Format a ServiceResult for display.

    Args:
        result: The service result to format.
        json_output: If True, return JSON; otherwise return human-readable text.
    """
    if json_output:
        return result.model_dump_json(indent=2)
    if result.ok:
        parts = [f"OK: {result.op}"]
        if result.data:
            parts.append(_format_data_human(result.data))
        return "\n".join(parts)

    if result.error is None:
        return f"ERROR: {result.op}: unknown error"
    lines = [f"ERROR: {result.op}: {result.error.message}"]
    detail = result.error.detail
    lines.extend(f"  {format_issue(issue)}" for issue in detail.get("issues", []))
    lines.extend(f"  candidate: {c}" for c in detail.get("candidates", []))
    return "\n".join(lines)
