"""
Project export / import.

Export returns a full snapshot (project, members, all targets, all actuals)
stamped with the export time. Import accepts ``{"targets": [...],
"actuals": [...]}`` and applies both lists through the normal upsert saves,
so importing the same file twice leaves the data unchanged apart from
``updated_at`` / ``updated_by``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from kpi_tracker.core.exceptions import ValidationError
from kpi_tracker.models.project import Project
from kpi_tracker.services import kpi_value_service, project_service
from kpi_tracker.storage import Storage

logger = logging.getLogger(__name__)


def export_project(project: Project) -> dict:
    snapshot = {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "project": project.to_dict(),
        "members": project_service.list_members(project.id),
        "targets": kpi_value_service.list_targets(project.id),
        "actuals": kpi_value_service.list_actuals(project.id),
    }
    logger.info(
        "Exported project %s: %d targets, %d actuals",
        project.id, len(snapshot["targets"]), len(snapshot["actuals"]),
    )
    return snapshot


def import_project_data(
    project: Project, data: dict, user_id: int, storage: Storage | None = None
) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Import payload must be an object")
    targets = data.get("targets") or []
    actuals = data.get("actuals") or []
    if not targets and not actuals:
        raise ValidationError("Nothing to import: targets and actuals are empty")

    imported = {"targets": 0, "actuals": 0}
    if targets:
        imported["targets"] = kpi_value_service.save_targets(
            project.id, {"targets": targets}, storage=storage
        )
    if actuals:
        imported["actuals"] = kpi_value_service.save_actuals(
            project.id, {"actuals": actuals}, user_id, storage=storage
        )
    logger.info("Imported into project %s: %s", project.id, imported)
    return imported
