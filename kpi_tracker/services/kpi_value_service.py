"""
Target and actual values per project period, plus the KPI tree view.

Saves are upserts keyed by (project_id, kpi_id, year, month): the latest
value replaces the previous one and re-submitting a batch is harmless.
``month`` is optional for targets (None = annual) and required for actuals.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import or_, select

from kpi_tracker.core.exceptions import ValidationError
from kpi_tracker.models import db
from kpi_tracker.models.kpi import KpiActual, KpiTarget
from kpi_tracker.services import kpi_template_service, kpi_tree
from kpi_tracker.storage import Storage, get_storage
from kpi_tracker.utils.helpers import parse_int, parse_number

logger = logging.getLogger(__name__)

TARGET_KEY = ("project_id", "kpi_id", "year", "month")
ACTUAL_KEY = ("project_id", "kpi_id", "year", "month")


def _items(payload, key: str) -> list[dict]:
    items = payload.get(key) if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        raise ValidationError(f"{key} must be a list", details={key: "invalid"})
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError(f"each {key} entry must be an object", details={key: "invalid"})
    return items


def _kpi_id(item: dict) -> str:
    kpi_id = item.get("kpi_id")
    if not isinstance(kpi_id, str) or not kpi_id.strip():
        raise ValidationError("kpi_id is required", details={"kpi_id": "required"})
    return kpi_id.strip()


def _target_row(project_id: int, item: dict, now: datetime) -> dict:
    return {
        "project_id": project_id,
        "kpi_id": _kpi_id(item),
        "year": parse_int(item.get("year"), "year", minimum=1900, maximum=9999),
        "month": parse_int(item.get("month"), "month", allow_none=True, minimum=1, maximum=12),
        "target_value": parse_number(item.get("target_value"), "target_value"),
        "updated_at": now,
    }


def _actual_row(project_id: int, item: dict, user_id: int | None, now: datetime) -> dict:
    return {
        "project_id": project_id,
        "kpi_id": _kpi_id(item),
        "year": parse_int(item.get("year"), "year", minimum=1900, maximum=9999),
        "month": parse_int(item.get("month"), "month", minimum=1, maximum=12),
        "actual_value": parse_number(item.get("actual_value"), "actual_value"),
        "updated_by": user_id,
        "updated_at": now,
    }


# ── Targets ──────────────────────────────────────────────────────────────


def list_targets(project_id: int, year: int | None = None) -> list[dict]:
    query = select(KpiTarget).where(KpiTarget.project_id == project_id)
    if year is not None:
        query = query.where(KpiTarget.year == year)
    rows = db.session.execute(
        query.order_by(KpiTarget.year, KpiTarget.month, KpiTarget.kpi_id)
    ).scalars().all()
    return [r.to_dict() for r in rows]


def save_targets(project_id: int, payload, storage: Storage | None = None) -> int:
    """Upsert a batch of targets; the whole batch is validated first."""
    storage = storage or get_storage()
    now = datetime.now(timezone.utc)
    rows = [_target_row(project_id, item, now) for item in _items(payload, "targets")]
    for row in rows:
        storage.upsert(KpiTarget.__table__, row, TARGET_KEY, ("target_value", "updated_at"))
    db.session.commit()
    logger.info("Saved %d targets for project %s", len(rows), project_id)
    return len(rows)


def initialize_targets(project_id: int, scope_id, year: int, storage: Storage | None = None) -> int:
    """Write every definition's default target as the annual target for ``year``."""
    items = [
        {"kpi_id": d.id, "year": year, "month": None, "target_value": d.default_target}
        for d in kpi_template_service.list_definitions(scope_id)
        if d.default_target is not None
    ]
    return save_targets(project_id, {"targets": items}, storage=storage)


# ── Actuals ──────────────────────────────────────────────────────────────


def list_actuals(project_id: int, year: int | None = None, month: int | None = None) -> list[dict]:
    query = select(KpiActual).where(KpiActual.project_id == project_id)
    if year is not None:
        query = query.where(KpiActual.year == year)
    if month is not None:
        query = query.where(KpiActual.month == month)
    rows = db.session.execute(
        query.order_by(KpiActual.year, KpiActual.month, KpiActual.kpi_id)
    ).scalars().all()
    return [r.to_dict() for r in rows]


def save_actuals(project_id: int, payload, user_id: int | None, storage: Storage | None = None) -> int:
    storage = storage or get_storage()
    now = datetime.now(timezone.utc)
    rows = [_actual_row(project_id, item, user_id, now) for item in _items(payload, "actuals")]
    for row in rows:
        storage.upsert(
            KpiActual.__table__, row, ACTUAL_KEY, ("actual_value", "updated_by", "updated_at")
        )
    db.session.commit()
    logger.info("Saved %d actuals for project %s (user=%s)", len(rows), project_id, user_id)
    return len(rows)


# ── Tree view ────────────────────────────────────────────────────────────


def get_kpi_tree(project_id: int, scope_id, year: int, month: int, driver_id: str | None = None) -> dict:
    """KPI forest of the project's scope with the period's figures."""
    definitions = [d.to_dict() for d in kpi_template_service.list_definitions(scope_id)]
    targets = db.session.execute(
        select(KpiTarget).where(
            KpiTarget.project_id == project_id,
            KpiTarget.year == year,
            or_(KpiTarget.month == month, KpiTarget.month.is_(None)),
        )
    ).scalars().all()
    actuals = db.session.execute(
        select(KpiActual).where(
            KpiActual.project_id == project_id,
            KpiActual.year == year,
            KpiActual.month == month,
        )
    ).scalars().all()

    roots = kpi_tree.build_tree(
        definitions,
        [t.to_dict() for t in targets],
        [a.to_dict() for a in actuals],
        filter_root_id=driver_id or None,
    )
    return {
        "year": year,
        "month": month,
        "driver": driver_id or None,
        "drivers": kpi_tree.drivers(definitions),
        "roots": [root.to_dict() for root in roots],
    }
