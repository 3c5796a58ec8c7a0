"""
Dashboard roll-up tests: KGIs, agent scores and alerts.
"""

import pytest

from kpi_tracker.services import dashboard_service, kpi_value_service
from kpi_tracker.services.dashboard_service import _round_rate

YEAR, MONTH = 2024, 5


@pytest.fixture()
def project(project_setup):
    return project_setup["project"]


def _values(project, pairs, user_id=None):
    """pairs: {kpi_id: (target, actual)} — annual targets, monthly actuals."""
    kpi_value_service.save_targets(project.id, {"targets": [
        {"kpi_id": k, "year": YEAR, "target_value": t} for k, (t, _a) in pairs.items()
    ]})
    kpi_value_service.save_actuals(project.id, {"actuals": [
        {"kpi_id": k, "year": YEAR, "month": MONTH, "actual_value": a}
        for k, (_t, a) in pairs.items() if a is not None
    ]}, user_id)


def test_kgi_without_values_reports_nulls(project):
    summary = dashboard_service.get_summary(project.id, None, YEAR, MONTH)
    assert summary["year"] == YEAR and summary["month"] == MONTH
    assert len(summary["kgis"]) == 1
    kgi = summary["kgis"][0]
    assert kgi["id"] == "kgi_001"
    assert kgi["target_value"] is None
    assert kgi["actual_value"] is None
    assert summary["alerts"] == []
    assert summary["agent_scores"] == []


def test_kgi_with_values(project):
    _values(project, {"kgi_001": (1000, 900)})
    kgi = dashboard_service.get_summary(project.id, None, YEAR, MONTH)["kgis"][0]
    assert kgi["target_value"] == 1000
    assert kgi["actual_value"] == 900


def test_kgi_repeats_once_per_target_row_of_the_year(project):
    kpi_value_service.save_targets(project.id, {"targets": [
        {"kpi_id": "kgi_001", "year": YEAR, "target_value": 1200},
        {"kpi_id": "kgi_001", "year": YEAR, "month": 1, "target_value": 90},
        {"kpi_id": "kgi_001", "year": YEAR, "month": MONTH, "target_value": 100},
    ]})
    kgis = dashboard_service.get_summary(project.id, None, YEAR, MONTH)["kgis"]
    assert [k["id"] for k in kgis] == ["kgi_001"] * 3
    assert sorted(k["target_value"] for k in kgis) == [90, 100, 1200]


def test_alert_threshold(project):
    _values(project, {"drv_traffic": (100, 75), "drv_cvr": (100, 65)})
    alerts = dashboard_service.get_summary(project.id, None, YEAR, MONTH)["alerts"]
    assert [a["id"] for a in alerts] == ["drv_cvr"]
    assert alerts[0]["achievement_rate"] == 65.0


def test_alerts_sorted_worst_first_and_capped(project):
    ids = ["trf_amazon", "trf_rakuten", "trf_own", "trf_b2b", "ads_total", "cvr_amazon",
           "cvr_rakuten", "cvr_own", "cvr_cart", "aov_base", "aov_cross", "aov_discount"]
    _values(project, {kpi: (100, 10 + i) for i, kpi in enumerate(ids)})
    alerts = dashboard_service.get_summary(project.id, None, YEAR, MONTH)["alerts"]
    assert len(alerts) == dashboard_service.ALERT_LIMIT
    assert [a["id"] for a in alerts] == ids[:10]
    assert alerts[0]["achievement_rate"] == 10.0


def test_zero_or_missing_target_never_alerts(project):
    _values(project, {"drv_traffic": (0, 5), "drv_cvr": (None, 1)})
    assert dashboard_service.get_summary(project.id, None, YEAR, MONTH)["alerts"] == []


def test_agent_scores(project):
    _values(project, {
        "drv_traffic": (100, 75),   # ACQUISITION, missed
        "drv_cvr": (3, 3.5),        # OPERATIONS, achieved
        "drv_aov": (5000, None),    # OPERATIONS, no actual
    })
    scores = {s["agent"]: s for s in dashboard_service.get_summary(project.id, None, YEAR, MONTH)["agent_scores"]}
    assert scores["ACQUISITION"] == {"agent": "ACQUISITION", "total": 1, "achieved": 0}
    assert scores["OPERATIONS"] == {"agent": "OPERATIONS", "total": 2, "achieved": 1}


def test_other_period_is_ignored(project):
    _values(project, {"drv_cvr": (100, 10)})
    assert dashboard_service.get_summary(project.id, None, YEAR, MONTH + 1)["alerts"] == []
    assert dashboard_service.get_summary(project.id, None, YEAR + 1, MONTH)["alerts"] == []


def test_round_rate_half_up():
    assert _round_rate(0.6666) == 66.7
    assert _round_rate(0.12345) == 12.3
    assert _round_rate(0.00125) == 0.1
