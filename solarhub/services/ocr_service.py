"""Batch OCR orchestration.

Eligible documents have a Drive file and miss at least one of the two
status dates. A batch takes at most ``OCR_MAX_BATCH_SIZE`` of them and runs
``OCR_MAX_CONCURRENT`` workers that pull the next pending task until the
queue is empty or the run is cancelled.

Workers only talk to the OCR gateway. Extracted dates are written back on
the request thread after every worker has finished, and only into fields
the document still lacks; each written document gets one UPDATE audit entry.

Task status: pending → processing → success | error, or skipped when the
run was cancelled before the task was dispatched. Cancelling never recalls
a request already in flight; its result is kept.

A run is registered under its ``run_id`` for as long as it is running.
Callers that want to cancel over HTTP pick the id themselves and send it
with the start request, since the generated id is only returned once the
run is over.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from solarhub.core.exceptions import ConflictError, ValidationError
from solarhub.integrations.ocr_gateway import OcrGateway, build_ocr_gateway
from solarhub.models import db
from solarhub.models.audit import AuditAction
from solarhub.models.document import Document
from solarhub.services import audit_service
from solarhub.utils.helpers import parse_date

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUS_SKIPPED = "skipped"

CANCELLED_MESSAGE = "已取消"
NO_ELIGIBLE_MESSAGE = "沒有符合條件的文件（需有雲端檔案且缺少日期）"

_DATE_KEYS = ("submitted_at", "issued_at")
MAX_RUN_ID_LENGTH = 64


@dataclass
class OcrTask:
    document_id: int
    document_title: str
    project_code: str | None
    drive_file_id: str
    status: str = STATUS_PENDING
    error: str | None = None
    extracted_dates: dict = field(default_factory=dict)
    updated_fields: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "document_title": self.document_title,
            "project_code": self.project_code,
            "status": self.status,
            "error": self.error,
            "extracted_dates": self.extracted_dates,
            "updated_fields": self.updated_fields,
        }


class BatchOcrRun:
    """State of one batch: the task list, a cursor and a cancel flag."""

    def __init__(self, tasks: list[OcrTask], run_id: str | None = None):
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.tasks = tasks
        self._cursor = 0
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def next_task(self) -> OcrTask | None:
        """Claim the next pending task; None when drained or cancelled."""
        with self._lock:
            if self._cancelled.is_set() or self._cursor >= len(self.tasks):
                return None
            task = self.tasks[self._cursor]
            self._cursor += 1
            task.status = STATUS_PROCESSING
            return task

    def progress(self) -> dict:
        counts = {s: 0 for s in (STATUS_PENDING, STATUS_PROCESSING, STATUS_SUCCESS, STATUS_ERROR, STATUS_SKIPPED)}
        for task in self.tasks:
            counts[task.status] += 1
        return {
            "total": len(self.tasks),
            "completed": counts[STATUS_SUCCESS] + counts[STATUS_ERROR] + counts[STATUS_SKIPPED],
            "success": counts[STATUS_SUCCESS],
            "error": counts[STATUS_ERROR],
            "skipped": counts[STATUS_SKIPPED],
        }

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "cancelled": self.cancelled,
            "progress": self.progress(),
            "tasks": [t.to_dict() for t in self.tasks],
        }


# Runs in flight, so a second request can cancel them.
_active_runs: dict[str, BatchOcrRun] = {}
_active_lock = threading.Lock()


def cancel_batch_ocr(run_id: str) -> bool:
    """Stop dispatching new tasks for ``run_id``. False if no such run is active."""
    with _active_lock:
        run = _active_runs.get(run_id)
    if run is None:
        return False
    run.cancel()
    logger.info("Batch OCR run %s cancelled", run_id)
    return True


def eligible_documents(
    document_ids: list[int] | None = None,
    project_id: int | None = None,
    limit: int | None = None,
) -> list[Document]:
    query = Document.query_active().filter(
        Document.drive_file_id.isnot(None),
        Document.drive_file_id != "",
        db.or_(Document.submitted_at.is_(None), Document.issued_at.is_(None)),
    )
    if document_ids is not None:
        query = query.filter(Document.id.in_(document_ids))
    if project_id is not None:
        query = query.filter(Document.project_id == project_id)
    query = query.order_by(Document.id.asc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def _worker(run: BatchOcrRun, gateway: OcrGateway, max_pages: int) -> None:
    while True:
        task = run.next_task()
        if task is None:
            return
        result = gateway.extract_dates(task.document_id, task.drive_file_id, max_pages=max_pages)
        if result.ok:
            task.status = STATUS_SUCCESS
            task.extracted_dates = result.dates
        else:
            task.status = STATUS_ERROR
            task.error = result.error


def _apply_dates(task: OcrTask, actor: str | None) -> None:
    doc = db.session.get(Document, task.document_id)
    if doc is None or doc.is_deleted:
        return
    old = audit_service.snapshot(doc)
    for key in _DATE_KEYS:
        value = parse_date(task.extracted_dates.get(key))
        if value is not None and getattr(doc, key) is None:
            setattr(doc, key, value)
            task.updated_fields.append(key)
    if not task.updated_fields:
        return
    db.session.commit()
    audit_service.log_action(
        "documents", doc.id, AuditAction.UPDATE,
        actor_user_id=actor, old_data=old, new_data=audit_service.snapshot(doc),
        reason="OCR date extraction",
    )


def _check_options(document_ids, max_pages, run_id) -> int:
    errors = {}
    if document_ids is not None and not isinstance(document_ids, list):
        errors["document_ids"] = "must be a list"
    try:
        pages = int(max_pages)
    except (TypeError, ValueError):
        errors["max_pages"] = "must be an integer"
    else:
        if pages < 1:
            errors["max_pages"] = "must be >= 1"
    if run_id is not None and (not isinstance(run_id, str) or not 0 < len(run_id) <= MAX_RUN_ID_LENGTH):
        errors["run_id"] = f"must be a string of 1-{MAX_RUN_ID_LENGTH} characters"
    if errors:
        raise ValidationError("Invalid batch OCR request", details=errors)
    return pages


def start_batch_ocr(
    document_ids: list[int] | None = None,
    *,
    project_id: int | None = None,
    actor: str | None = None,
    auto_update: bool = True,
    max_pages: int = 1,
    gateway: OcrGateway | None = None,
    run_id: str | None = None,
    on_start=None,
) -> dict:
    """Run OCR over the eligible documents and return the per-task report.

    ``run_id`` lets the caller name the run up front so it can be cancelled
    while this call is still in progress. ``on_start`` is called with the
    ``BatchOcrRun`` once it is registered, before any task is dispatched.

    Raises:
        ValidationError: malformed ``document_ids``, ``max_pages`` or ``run_id``.
        ConflictError: ``run_id`` belongs to a batch that is still running.
    """
    max_pages = _check_options(document_ids, max_pages, run_id)

    config = current_app.config
    docs = eligible_documents(document_ids, project_id, limit=config.get("OCR_MAX_BATCH_SIZE", 50))
    if not docs:
        return {"started": False, "message": NO_ELIGIBLE_MESSAGE}

    tasks = [
        OcrTask(
            document_id=d.id,
            document_title=d.title or d.doc_type or "未命名",
            project_code=d.project.project_code if d.project else None,
            drive_file_id=d.drive_file_id,
        )
        for d in docs
    ]
    gateway = gateway or build_ocr_gateway(config)
    run = BatchOcrRun(tasks, run_id=run_id)
    with _active_lock:
        if run.run_id in _active_runs:
            raise ConflictError("batch_ocr", "run_id", run.run_id)
        _active_runs[run.run_id] = run
    if on_start is not None:
        on_start(run)

    workers = min(config.get("OCR_MAX_CONCURRENT", 3), len(tasks))
    logger.info("Batch OCR run %s: %d document(s), %d worker(s)", run.run_id, len(tasks), workers)
    try:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ocr") as pool:
            futures = [pool.submit(_worker, run, gateway, max_pages) for _ in range(workers)]
            for future in futures:
                future.result()
    finally:
        with _active_lock:
            _active_runs.pop(run.run_id, None)

    for task in tasks:
        if task.status == STATUS_PENDING:
            task.status = STATUS_SKIPPED
            task.error = CANCELLED_MESSAGE

    if auto_update:
        for task in tasks:
            if task.status != STATUS_SUCCESS or not task.extracted_dates:
                continue
            try:
                _apply_dates(task, actor)
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.warning("Batch OCR write-back failed document_id=%s: %s", task.document_id, exc)
                task.status = STATUS_ERROR
                task.error = str(exc)

    report = run.to_dict()
    logger.info("Batch OCR run %s finished: %s", run.run_id, report["progress"])
    return {"started": True, **report}
