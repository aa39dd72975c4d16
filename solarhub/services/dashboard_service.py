"""Dashboard layout settings.

The layout is an explicit ``DashboardConfig`` value loaded for the acting
user on each request. Stored rows are merged over ``DEFAULT_SECTIONS`` so a
section added in code shows up for users who saved their layout earlier,
and sections no longer defined are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from solarhub.core.exceptions import ValidationError
from solarhub.models import db
from solarhub.models.dashboard import DashboardSettings

logger = logging.getLogger(__name__)

DEFAULT_SECTIONS = (
    {"id": "phase-overview", "label": "兩階段流程概覽", "visible": True, "order": 0},
    {"id": "phase2-tracks", "label": "第二階段多軌追蹤", "visible": True, "order": 1},
    {"id": "health-kpis", "label": "健康指標 KPI", "visible": True, "order": 2},
    {"id": "action-required", "label": "待處理事項", "visible": True, "order": 3},
    {"id": "advanced-analysis", "label": "進階分析", "visible": True, "order": 4},
)

DEFAULT_FILTERS = {"investor": "all", "status": "all", "construction_status": "all"}

_SECTION_IDS = frozenset(s["id"] for s in DEFAULT_SECTIONS)


@dataclass
class DashboardConfig:
    user_id: str | None
    sections: list = field(default_factory=lambda: [dict(s) for s in DEFAULT_SECTIONS])
    default_filters: dict = field(default_factory=lambda: dict(DEFAULT_FILTERS))
    is_default: bool = True

    def visible_section_ids(self) -> list[str]:
        return [s["id"] for s in sorted(self.sections, key=lambda s: s["order"]) if s["visible"]]

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "sections": sorted(self.sections, key=lambda s: s["order"]),
            "default_filters": self.default_filters,
            "visible_sections": self.visible_section_ids(),
            "is_default": self.is_default,
        }


def _merge_sections(stored) -> list[dict]:
    by_id = {s.get("id"): s for s in stored or [] if isinstance(s, dict)}
    merged = []
    for default in DEFAULT_SECTIONS:
        saved = by_id.get(default["id"], {})
        merged.append({
            "id": default["id"],
            "label": default["label"],
            "visible": bool(saved.get("visible", default["visible"])),
            "order": int(saved.get("order", default["order"])),
        })
    return merged


def get_dashboard_config(user_id: str | None) -> DashboardConfig:
    if not user_id:
        return DashboardConfig(user_id=None)
    row = DashboardSettings.query.filter_by(user_id=user_id).first()
    if row is None:
        return DashboardConfig(user_id=user_id)
    return DashboardConfig(
        user_id=user_id,
        sections=_merge_sections(row.sections),
        default_filters={**DEFAULT_FILTERS, **(row.default_filters or {})},
        is_default=False,
    )


def _validate_sections(sections) -> list[dict]:
    if not isinstance(sections, list):
        raise ValidationError("sections must be a list", details={"sections": "must be a list"})
    errors = {}
    for item in sections:
        if not isinstance(item, dict) or item.get("id") not in _SECTION_IDS:
            errors[str(item.get("id") if isinstance(item, dict) else item)] = "unknown section"
            continue
        if "order" in item:
            try:
                int(item["order"])
            except (TypeError, ValueError):
                errors[item["id"]] = "order must be an integer"
    if errors:
        raise ValidationError("Invalid dashboard sections", details=errors)
    return _merge_sections(sections)


def save_dashboard_config(user_id: str | None, data: dict) -> DashboardConfig:
    if not user_id:
        raise ValidationError("X-User-Id is required to save dashboard settings",
                              details={"user_id": "required"})

    current = get_dashboard_config(user_id)
    sections = _validate_sections(data["sections"]) if "sections" in data else current.sections
    filters = current.default_filters
    if "default_filters" in data:
        if not isinstance(data["default_filters"], dict):
            raise ValidationError("default_filters must be an object")
        filters = {**DEFAULT_FILTERS, **data["default_filters"]}

    row = DashboardSettings.query.filter_by(user_id=user_id).first()
    if row is None:
        row = DashboardSettings(user_id=user_id)
        db.session.add(row)
    row.sections = sections
    row.default_filters = filters
    db.session.commit()
    logger.info("Dashboard settings saved for user %s", user_id)
    return get_dashboard_config(user_id)


def reset_dashboard_config(user_id: str | None) -> DashboardConfig:
    if user_id:
        DashboardSettings.query.filter_by(user_id=user_id).delete()
        db.session.commit()
    return DashboardConfig(user_id=user_id)
