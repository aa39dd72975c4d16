"""Derived document status.

A document's lifecycle state is never stored. It is computed from the two
date fields on every read, so editing either date changes the displayed
status immediately:

    issued_at present              → 已取得 (obtained)
    else submitted_at present      → 已開始 (in progress)
    else                           → 未開始 (not started)

Missing, empty or unparseable dates count as absent.
"""

from __future__ import annotations

import enum

from solarhub.utils.helpers import parse_date


class DocumentStatus(str, enum.Enum):
    NOT_STARTED = "未開始"
    IN_PROGRESS = "已開始"
    OBTAINED = "已取得"

    @property
    def label_en(self) -> str:
        return _EN_LABELS[self]


_EN_LABELS = {
    DocumentStatus.NOT_STARTED: "not started",
    DocumentStatus.IN_PROGRESS: "in progress",
    DocumentStatus.OBTAINED: "obtained",
}


def _present(value) -> bool:
    return parse_date(value) is not None


def derive_document_status(submitted_at=None, issued_at=None) -> DocumentStatus:
    """Return the lifecycle state implied by the two date fields."""
    if _present(issued_at):
        return DocumentStatus.OBTAINED
    if _present(submitted_at):
        return DocumentStatus.IN_PROGRESS
    return DocumentStatus.NOT_STARTED


def parse_status(value: str) -> DocumentStatus:
    """Accept either the stored label (未開始…) or the enum name / English label.

    Raises:
        ValueError: value matches no status.
    """
    text = (value or "").strip()
    for status in DocumentStatus:
        if text in (status.value, status.name, status.name.lower(), status.label_en):
            return status
    raise ValueError(f"Unknown document status: {value!r}")
