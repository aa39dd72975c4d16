"""
Acting-user context.

Authentication is handled upstream (the hosted auth provider / reverse
proxy); this middleware only reads the identity it forwards:

    X-User-Id    — opaque user id recorded in audit_logs.actor_user_id
    X-User-Role  — admin | staff | viewer (default: staff)

Usage:
    @bp.route("/system/reset", methods=["POST"])
    @admin_required
    def reset_database():
        ...
"""

import functools
import logging

from flask import Flask, g, request

from solarhub.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"
DEFAULT_ROLE = ROLE_STAFF


def init_actor_context(app: Flask):
    """Populate ``g.actor_user_id`` / ``g.actor_role`` for every request."""

    @app.before_request
    def _load_actor():
        user_id = (request.headers.get("X-User-Id") or "").strip()
        role = (request.headers.get("X-User-Role") or "").strip().lower()
        g.actor_user_id = user_id or None
        g.actor_role = role or DEFAULT_ROLE


def current_actor() -> str | None:
    return getattr(g, "actor_user_id", None)


def is_admin() -> bool:
    return getattr(g, "actor_role", DEFAULT_ROLE) == ROLE_ADMIN


def admin_required(f):
    """Decorator: reject the request with 403 unless the actor is an admin."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if not is_admin():
            logger.warning(
                "User %s denied: admin role required on %s",
                current_actor(), f.__name__,
            )
            return api_error(E.FORBIDDEN, "Admin role required")
        return f(*args, **kwargs)

    return decorated
