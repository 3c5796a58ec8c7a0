"""
Rate limiting configuration.

Applies per-blueprint limits using Flask-Limiter. The Limiter instance is
created in kpi_tracker/__init__.py with no default limits; this module
applies granular limits per route category.

Usage:
    from kpi_tracker.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Credential endpoints: slow down password guessing
AUTH_LIMIT = "20/minute"
WRITE_LIMIT = "120/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - auth / super-admin:  20/minute
        - project data:        120/minute
        - health check:        exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("auth", "platform_admin"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(AUTH_LIMIT)(bp)

    for bp_name in ("projects", "kpi", "dashboard"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: auth: %s, data: %s", AUTH_LIMIT, WRITE_LIMIT)
