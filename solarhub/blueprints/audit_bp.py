"""
SolarHub Back-Office
Audit log blueprint (read-only; entries are written by the services).

Endpoints:
    GET  /api/v1/audit                                   — list / filter audit logs
    GET  /api/v1/audit/<int:log_id>                      — single audit entry
    GET  /api/v1/audit/records/<table>/<record_id>       — history of one record
"""

from flask import Blueprint, jsonify, request

from solarhub.services import audit_service
from solarhub.utils.errors import register_error_handlers

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1")
register_error_handlers(audit_bp)


# ── List / filter ────────────────────────────────────────────────────────────

@audit_bp.route("/audit", methods=["GET"])
def list_audit_logs():
    """
    Return paginated audit logs, newest first.

    Query params:
        table_name   — filter by table
        record_id    — filter by record PK
        action       — DELETE | RESTORE | PURGE | ...
        actor        — filter by actor_user_id
        page         — page number (default 1)
        per_page     — items per page (default 50, max 200)
    """
    return jsonify(audit_service.list_audit_logs(
        table_name=request.args.get("table_name"),
        record_id=request.args.get("record_id"),
        action=request.args.get("action"),
        actor_user_id=request.args.get("actor"),
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 50, type=int),
    ))


# ── Single entry ─────────────────────────────────────────────────────────────

@audit_bp.route("/audit/<int:log_id>", methods=["GET"])
def get_audit_log(log_id):
    return jsonify(audit_service.get_audit_log(log_id))


# ── Record history ───────────────────────────────────────────────────────────

@audit_bp.route("/audit/records/<table_name>/<record_id>", methods=["GET"])
def record_history(table_name, record_id):
    entries = audit_service.record_history(table_name, record_id)
    return jsonify({"table_name": table_name, "record_id": record_id, "entries": entries})
