"""
SolarHub Back-Office
System operations blueprint (admin only).

Endpoints:
    GET  /api/v1/system/stats            — row / deleted counts per table
    GET  /api/v1/system/integrity        — data integrity scan
    GET  /api/v1/system/reset-cooldown   — time left before another reset is allowed
    POST /api/v1/system/export           — JSON snapshot           (DB_EXPORT)
    POST /api/v1/system/import           — insert snapshot rows    (DB_IMPORT)
    POST /api/v1/system/reset            — scoped wipe             (DB_RESET)

Reset body:
    {scope: demo|business|factory, confirm_text: "RESET", environment_id,
     reason (>= 10 chars), backup_file_id}
"""

import logging

from flask import Blueprint, jsonify

from solarhub.blueprints import json_body
from solarhub.middleware.actor import admin_required, current_actor
from solarhub.services import system_service as svc
from solarhub.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

system_bp = Blueprint("system", __name__, url_prefix="/api/v1/system")
register_error_handlers(system_bp)


@system_bp.before_request
@admin_required
def _require_admin():
    return None


@system_bp.route("/stats", methods=["GET"])
def stats():
    return jsonify(svc.table_stats())


@system_bp.route("/integrity", methods=["GET"])
def integrity():
    return jsonify(svc.check_integrity())


@system_bp.route("/reset-cooldown", methods=["GET"])
def reset_cooldown():
    return jsonify(svc.reset_cooldown_status())


@system_bp.route("/export", methods=["POST"])
def export_database():
    return jsonify(svc.export_database(actor=current_actor()))


@system_bp.route("/import", methods=["POST"])
def import_database():
    return jsonify(svc.import_database(json_body(), actor=current_actor()))


@system_bp.route("/reset", methods=["POST"])
def reset_database():
    result = svc.reset_database(json_body(), actor=current_actor())
    if not result["success"]:
        logger.error("Database reset finished with errors: %s", result["errors"])
        return jsonify({**result, "error": "部分資料表刪除失敗"}), 500
    return jsonify({**result, "message": "資料庫重置完成"})
