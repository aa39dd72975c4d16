"""
SolarHub Back-Office
Deletion blueprint — policies, record lifecycle operations, recycle bin.

Endpoints:
    GET  /api/v1/deletion-policies                          — effective policy per governed table
    GET  /api/v1/deletion-policies/<table>                  — one table
    PUT  /api/v1/deletion-policies/<table>                  — upsert (admin)
    POST /api/v1/records/<table>/<id>/delete                — dispatch by policy   {reason}
    POST /api/v1/records/<table>/<id>/restore               — undo soft delete
    POST /api/v1/records/<table>/<id>/purge                 — physical delete      {confirm, reason}
    POST /api/v1/records/<table>/<id>/archive               — archive              {reason}
    POST /api/v1/records/<table>/<id>/unarchive
    POST /api/v1/records/<table>/batch-delete               — {record_ids, reason}
    POST /api/v1/records/<table>/batch-restore              — {record_ids}
    POST /api/v1/records/<table>/batch-purge                — {record_ids, confirm}
    GET  /api/v1/recycle-bin                                — soft-deleted records (?table=)

Batch responses list one {record_id, ok, error} per id; a failing id never
aborts the rest.
"""

from flask import Blueprint, jsonify, request

from solarhub.blueprints import json_body
from solarhub.middleware.actor import admin_required, current_actor, is_admin
from solarhub.services import deletion_service as svc
from solarhub.utils.errors import register_error_handlers
from solarhub.utils.helpers import parse_bool

deletion_bp = Blueprint("deletion", __name__, url_prefix="/api/v1")
register_error_handlers(deletion_bp)


# ── Policies ─────────────────────────────────────────────────────────────────

@deletion_bp.route("/deletion-policies", methods=["GET"])
def list_policies():
    return jsonify({"policies": svc.list_policies()})


@deletion_bp.route("/deletion-policies/<table_name>", methods=["GET"])
def get_policy(table_name):
    return jsonify(svc.get_effective_policy(table_name).to_dict())


@deletion_bp.route("/deletion-policies/<table_name>", methods=["PUT"])
@admin_required
def upsert_policy(table_name):
    return jsonify(svc.upsert_policy(table_name, json_body(), actor=current_actor()))


# ── Single record ────────────────────────────────────────────────────────────

@deletion_bp.route("/records/<table_name>/<int:record_id>/delete", methods=["POST"])
def delete_record(table_name, record_id):
    data = json_body()
    return jsonify(svc.delete_record(table_name, record_id, reason=data.get("reason"), actor=current_actor()))


@deletion_bp.route("/records/<table_name>/<int:record_id>/restore", methods=["POST"])
def restore_record(table_name, record_id):
    data = json_body()
    return jsonify(svc.restore_record(table_name, record_id, actor=current_actor(), reason=data.get("reason")))


@deletion_bp.route("/records/<table_name>/<int:record_id>/purge", methods=["POST"])
def purge_record(table_name, record_id):
    data = json_body()
    return jsonify(svc.purge_record(
        table_name, record_id,
        actor=current_actor(),
        admin=is_admin(),
        confirm=parse_bool(data.get("confirm")),
        reason=data.get("reason"),
    ))


@deletion_bp.route("/records/<table_name>/<int:record_id>/archive", methods=["POST"])
def archive_record(table_name, record_id):
    data = json_body()
    return jsonify(svc.archive_record(table_name, record_id, reason=data.get("reason"), actor=current_actor()))


@deletion_bp.route("/records/<table_name>/<int:record_id>/unarchive", methods=["POST"])
def unarchive_record(table_name, record_id):
    return jsonify(svc.unarchive_record(table_name, record_id, actor=current_actor()))


# ── Batch ────────────────────────────────────────────────────────────────────

@deletion_bp.route("/records/<table_name>/batch-delete", methods=["POST"])
def batch_delete(table_name):
    data = json_body()
    return jsonify(svc.batch_delete(
        table_name, data.get("record_ids"), reason=data.get("reason"), actor=current_actor(),
    ))


@deletion_bp.route("/records/<table_name>/batch-restore", methods=["POST"])
def batch_restore(table_name):
    data = json_body()
    return jsonify(svc.batch_restore(table_name, data.get("record_ids"), actor=current_actor()))


@deletion_bp.route("/records/<table_name>/batch-purge", methods=["POST"])
def batch_purge(table_name):
    data = json_body()
    return jsonify(svc.batch_purge(
        table_name, data.get("record_ids"),
        actor=current_actor(),
        admin=is_admin(),
        confirm=parse_bool(data.get("confirm")),
    ))


# ── Recycle bin ──────────────────────────────────────────────────────────────

@deletion_bp.route("/recycle-bin", methods=["GET"])
def recycle_bin():
    items = svc.list_recycle_bin(request.args.get("table"))
    return jsonify({"items": items, "total": len(items)})
