"""
SolarHub Back-Office
Progress settings blueprint.

Endpoints:
    GET/PUT  /api/v1/progress/weights               — admin / engineering split
    GET/PUT  /api/v1/progress/alert-thresholds      — stalled-project thresholds
    GET/POST /api/v1/progress/milestones            — milestone catalogue (?track=admin|engineering)
    PUT      /api/v1/progress/milestones/<id>
    GET      /api/v1/progress/track-summary         — active weight totals per track

Writes require the admin role.
"""

from flask import Blueprint, jsonify, request

from solarhub.blueprints import json_body
from solarhub.middleware.actor import admin_required
from solarhub.services import progress_service as svc
from solarhub.utils.errors import register_error_handlers
from solarhub.utils.helpers import parse_bool

progress_bp = Blueprint("progress", __name__, url_prefix="/api/v1/progress")
register_error_handlers(progress_bp)


@progress_bp.route("/weights", methods=["GET"])
def get_weights():
    return jsonify(svc.get_weights())


@progress_bp.route("/weights", methods=["PUT"])
@admin_required
def set_weights():
    return jsonify(svc.set_weights(json_body()))


@progress_bp.route("/alert-thresholds", methods=["GET"])
def get_alert_thresholds():
    return jsonify(svc.get_alert_thresholds().to_dict())


@progress_bp.route("/alert-thresholds", methods=["PUT"])
@admin_required
def set_alert_thresholds():
    return jsonify(svc.set_alert_thresholds(json_body()).to_dict())


@progress_bp.route("/milestones", methods=["GET"])
def list_milestones():
    include_inactive = parse_bool(request.args.get("include_inactive", "1"))
    milestones = svc.list_milestones(request.args.get("track"), include_inactive=include_inactive)
    return jsonify({"items": [m.to_dict() for m in milestones], "total": len(milestones)})


@progress_bp.route("/milestones", methods=["POST"])
@admin_required
def create_milestone():
    return jsonify(svc.create_milestone(json_body()).to_dict()), 201


@progress_bp.route("/milestones/<int:milestone_id>", methods=["PUT"])
@admin_required
def update_milestone(milestone_id):
    return jsonify(svc.update_milestone(milestone_id, json_body()).to_dict())


@progress_bp.route("/track-summary", methods=["GET"])
def track_summary():
    return jsonify(svc.track_weight_summary())
