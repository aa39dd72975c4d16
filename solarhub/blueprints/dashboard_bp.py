"""
Dashboard settings blueprint.

Section visibility / order is stored per user (X-User-Id) and returned as
one explicit configuration object.
"""

from flask import Blueprint, jsonify

from solarhub.blueprints import json_body
from solarhub.middleware.actor import current_actor
from solarhub.services import dashboard_service as svc
from solarhub.utils.errors import register_error_handlers

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")
register_error_handlers(dashboard_bp)


@dashboard_bp.route("/settings", methods=["GET"])
def get_settings():
    return jsonify(svc.get_dashboard_config(current_actor()).to_dict()), 200


@dashboard_bp.route("/settings", methods=["PUT"])
def save_settings():
    return jsonify(svc.save_dashboard_config(current_actor(), json_body()).to_dict()), 200


@dashboard_bp.route("/settings", methods=["DELETE"])
def reset_settings():
    """Drop the saved layout and return the defaults."""
    return jsonify(svc.reset_dashboard_config(current_actor()).to_dict()), 200
