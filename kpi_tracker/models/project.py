"""Project and project membership models."""

from datetime import datetime, timezone

from kpi_tracker.models import db
from kpi_tracker.models.base import ScopedModel


class Project(ScopedModel):
    """A KPI tracking workspace owned by one user within one scope."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    owner = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "owner_id": self.owner_id,
            "owner_name": self.owner.name if self.owner else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ProjectMember(db.Model):
    """Per-project role of a user: admin, editor or viewer."""

    __tablename__ = "project_members"

    ROLES = ("admin", "editor", "viewer")

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role = db.Column(db.String(20), nullable=False, default="viewer")
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    project = db.relationship("Project")
    user = db.relationship("User")

    __table_args__ = (
        db.CheckConstraint("role IN ('admin', 'editor', 'viewer')", name="ck_project_members_role"),
        db.Index("ix_project_members_user", "user_id"),
    )

    def to_dict(self):
        return {
            "project_id": self.project_id,
            "user_id": self.user_id,
            "role": self.role,
            "email": self.user.email if self.user else None,
            "name": self.user.name if self.user else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
