"""
Dashboard summary engine — KGI roll-up, agent scores and alerts for one
project period.

All queries go through the storage collaborator with ``?`` placeholders, so
the same text runs on SQLite and PostgreSQL.

Targets are joined on the year only, in the KGI, agent-score and alert
queries alike. Every target row of the year (the annual row and each
monthly row) joins the selected month's actual, so a KPI with several
target rows appears once per row: repeated in ``kgis`` and ``alerts`` and
counted more than once in agent totals. No row is preferred over another.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from kpi_tracker.storage import Storage, get_storage

logger = logging.getLogger(__name__)

ALERT_THRESHOLD = 0.70
ALERT_LIMIT = 10


def _scope_clause(column: str, scope_id: int | None) -> tuple[str, tuple]:
    if scope_id is None:
        return f"{column} IS NULL", ()
    return f"{column} = ?", (scope_id,)


def _round_rate(ratio: float) -> float:
    """Percentage with one decimal, halves away from zero (SQL ROUND semantics)."""
    return float(Decimal(str(ratio * 100)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def get_kgis(storage: Storage, project_id: int, scope_id, year: int, month: int) -> list[dict]:
    """Level 1 definitions with the period target/actual; nulls stay null."""
    scope_sql, scope_params = _scope_clause("km.tenant_id", scope_id)
    return storage.all(
        f"""
        SELECT km.id, km.name, km.unit, km.agent,
               km.benchmark_min, km.benchmark_max,
               kt.target_value, ka.actual_value
        FROM kpi_master km
        LEFT JOIN kpi_targets kt
               ON kt.kpi_id = km.id AND kt.project_id = ? AND kt.year = ?
        LEFT JOIN kpi_actuals ka
               ON ka.kpi_id = km.id AND ka.project_id = ? AND ka.year = ? AND ka.month = ?
        WHERE km.level = 1 AND {scope_sql}
        ORDER BY km.id
        """,
        (project_id, year, project_id, year, month, *scope_params),
    )


def get_agent_scores(storage: Storage, project_id: int, scope_id, year: int, month: int) -> list[dict]:
    """Per agent: definitions with a target (``total``) and those meeting it (``achieved``)."""
    scope_sql, scope_params = _scope_clause("km.tenant_id", scope_id)
    rows = storage.all(
        f"""
        SELECT km.agent,
               COUNT(*) AS total,
               SUM(CASE WHEN ka.actual_value >= kt.target_value THEN 1 ELSE 0 END) AS achieved
        FROM kpi_master km
        LEFT JOIN kpi_targets kt
               ON kt.kpi_id = km.id AND kt.project_id = ? AND kt.year = ?
        LEFT JOIN kpi_actuals ka
               ON ka.kpi_id = km.id AND ka.project_id = ? AND ka.year = ? AND ka.month = ?
        WHERE kt.target_value IS NOT NULL AND {scope_sql}
        GROUP BY km.agent
        ORDER BY km.agent
        """,
        (project_id, year, project_id, year, month, *scope_params),
    )
    return [
        {"agent": r["agent"], "total": int(r["total"] or 0), "achieved": int(r["achieved"] or 0)}
        for r in rows
    ]


def get_alerts(storage: Storage, project_id: int, scope_id, year: int, month: int) -> list[dict]:
    """Definitions below the alert threshold, worst first, capped."""
    scope_sql, scope_params = _scope_clause("km.tenant_id", scope_id)
    rows = storage.all(
        f"""
        SELECT km.id, km.name, km.agent, km.unit,
               kt.target_value, ka.actual_value
        FROM kpi_master km
        JOIN kpi_targets kt
          ON kt.kpi_id = km.id AND kt.project_id = ? AND kt.year = ?
        JOIN kpi_actuals ka
          ON ka.kpi_id = km.id AND ka.project_id = ? AND ka.year = ? AND ka.month = ?
        WHERE kt.target_value IS NOT NULL AND kt.target_value <> 0
          AND ka.actual_value IS NOT NULL AND {scope_sql}
        """,
        (project_id, year, project_id, year, month, *scope_params),
    )

    alerts = []
    for r in rows:
        ratio = r["actual_value"] / r["target_value"]
        if ratio < ALERT_THRESHOLD:
            alerts.append((ratio, r))
    alerts.sort(key=lambda pair: (pair[0], pair[1]["id"]))

    return [
        {**r, "achievement_rate": _round_rate(ratio)}
        for ratio, r in alerts[:ALERT_LIMIT]
    ]


def get_summary(
    project_id: int,
    scope_id: int | None,
    year: int,
    month: int,
    storage: Storage | None = None,
) -> dict:
    """Roll-up view for one project period."""
    storage = storage or get_storage()
    summary = {
        "year": year,
        "month": month,
        "kgis": get_kgis(storage, project_id, scope_id, year, month),
        "agent_scores": get_agent_scores(storage, project_id, scope_id, year, month),
        "alerts": get_alerts(storage, project_id, scope_id, year, month),
    }
    logger.debug(
        "Summary project=%s %s-%02d: %d kgis, %d alerts",
        project_id, year, month, len(summary["kgis"]), len(summary["alerts"]),
    )
    return summary
