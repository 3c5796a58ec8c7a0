"""
KPI Tracker
Blueprint registry helpers.
"""

from datetime import date

from flask import request

from kpi_tracker.core.exceptions import ValidationError


def json_body() -> dict:
    """Return the JSON request body as a dict ({} when absent)."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def period_args(require_month: bool = True) -> tuple[int, int | None]:
    """Read ``year`` / ``month`` query params, defaulting to today."""
    today = date.today()
    year = request.args.get("year", type=int) or today.year
    month = request.args.get("month", type=int)
    if month is None and require_month:
        month = today.month
    if month is not None and not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    return year, month
