"""
Storage collaborator tests — placeholder rewriting and upserts on SQLite.
"""

import pytest
from sqlalchemy import func, select

from kpi_tracker.models import db
from kpi_tracker.models.kpi import KpiTarget
from kpi_tracker.models.project import Project
from kpi_tracker.storage import (
    PostgresStorage,
    SQLiteStorage,
    build_storage,
    get_storage,
    translate_placeholders,
)

KEY = ("project_id", "kpi_id", "year", "month")


@pytest.fixture()
def project_id(make_user):
    owner = make_user("owner@example.com")
    project = Project(name="P", owner_id=owner.id)
    db.session.add(project)
    db.session.commit()
    return project.id


def _targets():
    return db.session.scalar(select(func.count()).select_from(KpiTarget))


class TestPlaceholders:
    def test_rewrites_in_order(self):
        sql, count = translate_placeholders("SELECT * FROM t WHERE a = ? AND b = ?")
        assert sql == "SELECT * FROM t WHERE a = :p0 AND b = :p1"
        assert count == 2

    def test_ignores_question_marks_in_literals(self):
        sql, count = translate_placeholders("SELECT '?' AS q WHERE a = ?")
        assert sql == "SELECT '?' AS q WHERE a = :p0"
        assert count == 1


class TestBackendSelection:
    def test_registered_backend_matches_engine(self, app):
        assert isinstance(get_storage(), SQLiteStorage)

    def test_postgres(self):
        assert isinstance(build_storage(db.session, "postgresql"), PostgresStorage)

    def test_unknown_dialect(self):
        with pytest.raises(RuntimeError):
            build_storage(db.session, "oracle")


class TestRowAccess:
    def test_get_and_all_return_dicts(self, project_id):
        storage = get_storage()
        row = storage.get("SELECT id, name FROM projects WHERE id = ?", (project_id,))
        assert row == {"id": project_id, "name": "P"}
        assert storage.all("SELECT id FROM projects WHERE id = ?", (-1,)) == []

    def test_parameter_count_checked(self):
        with pytest.raises(ValueError):
            get_storage().get("SELECT ?", ())

    def test_run_returns_rowcount(self, project_id):
        changed = get_storage().run("UPDATE projects SET name = ? WHERE id = ?", ("Q", project_id))
        assert changed == 1


class TestUpsert:
    def _row(self, project_id, value, month=3):
        return {"project_id": project_id, "kpi_id": "kgi_001", "year": 2024,
                "month": month, "target_value": value}

    def test_monthly_key_keeps_one_row(self, project_id):
        storage = get_storage()
        storage.upsert(KpiTarget.__table__, self._row(project_id, 10), KEY, ("target_value",))
        storage.upsert(KpiTarget.__table__, self._row(project_id, 20), KEY, ("target_value",))
        db.session.commit()

        assert _targets() == 1
        assert db.session.execute(select(KpiTarget.target_value)).scalar() == 20

    def test_annual_key_with_null_month_keeps_one_row(self, project_id):
        storage = get_storage()
        storage.upsert(KpiTarget.__table__, self._row(project_id, 1, None), KEY, ("target_value",))
        storage.upsert(KpiTarget.__table__, self._row(project_id, 2, None), KEY, ("target_value",))
        db.session.commit()

        assert _targets() == 1
        assert db.session.execute(select(KpiTarget.target_value)).scalar() == 2

    def test_annual_and_monthly_rows_coexist(self, project_id):
        storage = get_storage()
        storage.upsert(KpiTarget.__table__, self._row(project_id, 1, None), KEY, ("target_value",))
        storage.upsert(KpiTarget.__table__, self._row(project_id, 2, 5), KEY, ("target_value",))
        db.session.commit()
        assert _targets() == 2
