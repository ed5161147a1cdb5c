"""TemplateService: the reserved ``templates`` collection.

A template is a document in ``templates/`` with a ``name`` and a ``for``
field naming (or aliasing) the collection it is meant for. Its body is
rendered with Jinja2 against the new document's raw field values when a
document is created from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from folio.errors import NotFoundError
from folio.infrastructure.repository import TEMPLATES_COLLECTION, by_collection
from folio.services.base import BaseService, service_op
from folio.services.result import ServiceResult

if TYPE_CHECKING:
    from folio.infrastructure.workspace import Workspace


@dataclass(frozen=True)
class TemplateRecord:
    name: str
    target: str
    path: str
    content: str

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "for": self.target, "path": self.path, "content": self.content}


def find_templates(workspace: Workspace) -> list[TemplateRecord]:
    """Every well-formed template; none when the collection does not exist."""
    if TEMPLATES_COLLECTION not in workspace.schemas:
        return []
    out: list[TemplateRecord] = []
    for record in workspace.repository.collect_all(by_collection(TEMPLATES_COLLECTION)):
        name = record.document.metadata.get("name")
        target = record.document.metadata.get("for")
        if isinstance(name, str) and isinstance(target, str):
            out.append(
                TemplateRecord(
                    name=name,
                    target=target,
                    path=record.path,
                    content=record.document.content,
                )
            )
    return out


def templates_for(workspace: Workspace, collection: str) -> list[TemplateRecord]:
    resolved = workspace.resolve_collection(collection)
    return [
        t for t in find_templates(workspace) if workspace.resolve_collection(t.target) == resolved
    ]


def select_template(workspace: Workspace, collection: str, name: str) -> TemplateRecord:
    """The template called *name* for *collection*.

    Raises:
        NotFoundError: No such template.
    """
    for template in templates_for(workspace, collection):
        if template.name == name:
            return template
    msg = f"no template '{name}' for collection '{collection}'"
    raise NotFoundError(msg)


class TemplateService(BaseService):
    """Read-only access to templates."""

    @service_op("list_templates")
    def list_templates(self, collection: str | None = None) -> ServiceResult:
        if collection:
            resolved, _ = self._workspace.require_schema(collection)
            templates = templates_for(self._workspace, resolved)
        else:
            templates = find_templates(self._workspace)
        return ServiceResult(
            ok=True,
            op="list_templates",
            data={"templates": [t.as_dict() for t in templates], "count": len(templates)},
        )
