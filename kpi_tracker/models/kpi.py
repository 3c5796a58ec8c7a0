"""
KPI models: templates, scoped definitions and per-project values.

Tables:
    kpi_templates        Shareable blueprints (at most one flagged default)
    kpi_template_items   Template rows, ids prefixed "<template_id>_"
    kpi_master           KpiDefinition rows owned by a tenant or the legacy scope
    kpi_targets          Target per (project, kpi, year, month|NULL)
    kpi_actuals          Actual per (project, kpi, year, month)
"""

from datetime import datetime, timezone

from kpi_tracker.models import db
from kpi_tracker.models.base import ScopedModel

AGENTS = ("COMMANDER", "ACQUISITION", "CREATIVE", "INSIGHT", "ENGAGEMENT", "OPERATIONS")


def _utcnow():
    return datetime.now(timezone.utc)


class KpiFieldsMixin:
    """Columns shared by template items and scoped definitions."""

    agent = db.Column(db.String(20), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    unit = db.Column(db.String(20), nullable=False)
    default_target = db.Column(db.Float, nullable=True)
    benchmark_min = db.Column(db.Float, nullable=True)
    benchmark_max = db.Column(db.Float, nullable=True)
    parent_kpi_id = db.Column(db.String(120), nullable=True)
    level = db.Column(db.Integer, nullable=False, default=1)
    description = db.Column(db.Text, nullable=True)

    def kpi_fields(self) -> dict:
        return {
            "agent": self.agent,
            "category": self.category,
            "name": self.name,
            "unit": self.unit,
            "default_target": self.default_target,
            "benchmark_min": self.benchmark_min,
            "benchmark_max": self.benchmark_max,
            "parent_kpi_id": self.parent_kpi_id,
            "level": self.level,
            "description": self.description,
        }


# ═══════════════════════════════════════════════════════════════
# TEMPLATES
# ═══════════════════════════════════════════════════════════════
class KpiTemplate(db.Model):
    __tablename__ = "kpi_templates"

    id = db.Column(db.String(80), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    __table_args__ = (
        db.Index(
            "uq_kpi_templates_default_true",
            "is_default",
            unique=True,
            postgresql_where=db.text("is_default IS TRUE"),
            sqlite_where=db.text("is_default = 1"),
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_default": bool(self.is_default),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class KpiTemplateItem(KpiFieldsMixin, db.Model):
    __tablename__ = "kpi_template_items"

    id = db.Column(db.String(120), primary_key=True)
    template_id = db.Column(
        db.String(80),
        db.ForeignKey("kpi_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    def to_dict(self):
        return {"id": self.id, "template_id": self.template_id, **self.kpi_fields()}


# ═══════════════════════════════════════════════════════════════
# SCOPED DEFINITIONS
# ═══════════════════════════════════════════════════════════════
class KpiDefinition(KpiFieldsMixin, ScopedModel):
    """A node of one scope's KPI hierarchy.

    ``id`` is the scoped id exposed to clients ("<tenant_id>_<local_id>",
    or the bare local id in the legacy scope). Ownership is decided by
    ``tenant_id``; ``local_id`` is the unprefixed natural key.
    """

    __tablename__ = "kpi_master"

    id = db.Column(db.String(120), primary_key=True)
    local_id = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "local_id", name="uq_kpi_master_scope_local"),
        db.Index("ix_kpi_master_parent", "parent_kpi_id"),
        db.Index("ix_kpi_master_tenant_level", "tenant_id", "level"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "local_id": self.local_id,
            **self.kpi_fields(),
        }


# ═══════════════════════════════════════════════════════════════
# VALUES
# ═══════════════════════════════════════════════════════════════
class KpiTarget(db.Model):
    __tablename__ = "kpi_targets"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    kpi_id = db.Column(db.String(120), nullable=False)
    target_value = db.Column(db.Float, nullable=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(db.DateTime, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "kpi_id", "year", "month", name="uq_kpi_targets_period"),
        db.Index("ix_kpi_targets_project_year", "project_id", "year"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "kpi_id": self.kpi_id,
            "target_value": self.target_value,
            "year": self.year,
            "month": self.month,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class KpiActual(db.Model):
    __tablename__ = "kpi_actuals"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    kpi_id = db.Column(db.String(120), nullable=False)
    actual_value = db.Column(db.Float, nullable=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    updated_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at = db.Column(db.DateTime, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "kpi_id", "year", "month", name="uq_kpi_actuals_period"),
        db.Index("ix_kpi_actuals_project_year", "project_id", "year"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "kpi_id": self.kpi_id,
            "actual_value": self.actual_value,
            "year": self.year,
            "month": self.month,
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
