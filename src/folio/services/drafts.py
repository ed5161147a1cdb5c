"""DraftService: stage a planned document as a hidden file, then commit or discard it.

A draft lives beside its future siblings as
``<collection>/.draft-<short id>-<suffix>.md``. The leading dot keeps it
out of discovery, so a draft is never listed, validated or found by id
until it is committed.
"""

from __future__ import annotations

import logging

from folio.domain.ids import short_id
from folio.domain.issues import ValidationIssue
from folio.domain.slug import MD_SUFFIX, slugify, strip_md
from folio.errors import NotFoundError, PathError, StorageError, ValidationError
from folio.infrastructure.filesystem import basename_of, normalize_path, parent_of
from folio.services._helpers import reconcile_path, record_payload
from folio.services.base import BaseService, service_op, write_locked
from folio.services.check import FILENAME_CODES, CheckService
from folio.services.documents import DocumentService
from folio.services.result import ServiceResult

logger = logging.getLogger(__name__)

DRAFT_PREFIX = ".draft-"
DRAFT_ID_LENGTH = 6


def draft_path_for(collection: str, doc_id: str, target_path: str) -> str:
    """Hidden path for a draft of the document planned at *target_path*."""
    suffix = slugify(strip_md(basename_of(target_path))) or "draft"
    return f"{collection}/{DRAFT_PREFIX}{short_id(doc_id, DRAFT_ID_LENGTH)}-{suffix}{MD_SUFFIX}"


def _check_draft_path(path: str) -> str:
    normalized = normalize_path(path)
    if "/" not in normalized or not basename_of(normalized).startswith("."):
        msg = f"not a draft path: {path}"
        raise PathError(msg)
    return normalized


class DraftService(BaseService):
    """Stage, commit and discard drafts."""

    @service_op("stage_draft")
    @write_locked
    def stage(
        self,
        collection: str,
        args: list[str],
        *,
        template: str | None = None,
    ) -> ServiceResult:
        """Plan a document from slug *args* and write it as a draft.

        When a document with the same slug values already exists nothing
        is written and ``staged`` is False.
        """
        planned = DocumentService(self._workspace).plan_by_slug(
            collection, args, template=template
        )
        if not planned.ok:
            return planned.model_copy(update={"op": "stage_draft"})
        if not planned.data["planned"]:
            return ServiceResult(
                ok=True,
                op="stage_draft",
                data={"staged": False, "document": planned.data["document"]},
            )

        document = planned.data["document"]
        target = document["path"]
        draft = draft_path_for(document["collection"], document["id"], target)
        self._workspace.fs.write_text(draft, planned.data["raw"])
        logger.info("Staged draft %s for %s", draft, target)
        return ServiceResult(
            ok=True,
            op="stage_draft",
            data={
                "staged": True,
                "draft_path": draft,
                "target_path": target,
                "raw": planned.data["raw"],
            },
        )

    @service_op("commit_draft")
    @write_locked
    def commit(self, draft_path: str, target_path: str) -> ServiceResult:
        """Validate the draft, write it at *target_path*, then move it onto its canonical path.

        The draft's content may have been edited since staging, so filename
        issues are ignored here; the final rename settles the path.

        Raises (as a failed result):
            PathError: *draft_path* is not a dot-prefixed file in a collection.
            NotFoundError: The draft does not exist.
            ValidationError: The draft has error-severity issues.
            StorageError: Something already exists at *target_path*.
        """
        ws = self._workspace
        draft = _check_draft_path(draft_path)
        target = normalize_path(target_path)
        if not ws.fs.is_file(draft):
            msg = f"draft not found: {draft}"
            raise NotFoundError(msg)

        raw = ws.fs.read_text(draft)
        collection = draft.split("/", 1)[0]
        issues = CheckService(ws).raw_issues(collection, target, raw)
        issues = [i for i in issues if i.code not in FILENAME_CODES]
        errors: list[ValidationIssue] = [i for i in issues if i.is_error]
        if errors:
            raise ValidationError(errors)

        if ws.fs.exists(target):
            msg = f"document already exists: {target}"
            raise StorageError(msg)

        ws.fs.mkdir_all(parent_of(target))
        ws.fs.write_text(target, raw)
        ws.fs.remove(draft)
        final = reconcile_path(ws, target)
        logger.info("Committed draft %s -> %s", draft, final)

        data = record_payload(ws.repository.load_by_path(final))
        data["draft_path"] = draft
        return ServiceResult(
            ok=True,
            op="commit_draft",
            data=data,
            warnings=[i.message for i in issues],
        )

    @service_op("discard_draft")
    @write_locked
    def discard(self, draft_path: str) -> ServiceResult:
        ws = self._workspace
        draft = _check_draft_path(draft_path)
        removed = ws.fs.is_file(draft)
        if removed:
            ws.fs.remove(draft)
            logger.info("Discarded draft %s", draft)
        return ServiceResult(
            ok=True, op="discard_draft", data={"draft_path": draft, "removed": removed}
        )
