"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in solarhub/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from solarhub.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Destructive / bulk endpoints
SYSTEM_LIMIT = "5/minute"
BATCH_LIMIT = "20/minute"
WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - System operations:  5/minute  (reset / export / import)
        - Deletion & OCR:     20/minute (batch mutations)
        - CRUD endpoints:     60/minute
        - Audit / dashboard:  200/minute
        - Health check:       exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("system")
    if bp:
        limiter.limit(SYSTEM_LIMIT)(bp)

    for bp_name in ("deletion", "documents"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(BATCH_LIMIT)(bp)

    for bp_name in ("projects", "directory", "progress"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    for bp_name in ("audit", "dashboard"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — system: %s, batch: %s, write: %s, read: %s",
        SYSTEM_LIMIT, BATCH_LIMIT, WRITE_LIMIT, READ_LIMIT,
    )
