"""
ScopedModel — abstract base for rows partitioned by owner scope.

Projects and KPI definitions belong either to a tenant or to the legacy
"no tenant" scope (``tenant_id IS NULL``). The two scopes are strictly
partitioned, so every read goes through ``scope_filter`` which turns a
``None`` scope into ``IS NULL`` instead of ``= NULL``.
"""

from kpi_tracker.models import db


class ScopedModel(db.Model):
    """Abstract base for tenant-or-legacy scoped tables."""
    __abstract__ = True

    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    @classmethod
    def scope_filter(cls, tenant_id):
        """SQL expression restricting rows to one owner scope."""
        if tenant_id is None:
            return cls.tenant_id.is_(None)
        return cls.tenant_id == tenant_id

    def in_scope(self, tenant_id) -> bool:
        return self.tenant_id == tenant_id
