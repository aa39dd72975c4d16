"""
SolarHub Back-Office
Directory blueprint — investors and partners.

Endpoints:
    GET/POST /api/v1/investors
    GET/PUT  /api/v1/investors/<id>
    GET/POST /api/v1/investors/<id>/contacts
    GET/POST /api/v1/partners
    GET/PUT  /api/v1/partners/<id>
    GET/POST /api/v1/partners/<id>/contacts

Deletion goes through /api/v1/records/<table>/<id>/delete so the table's
deletion policy applies.
"""

from flask import Blueprint, jsonify, request

from solarhub.blueprints import include_deleted_arg, json_body
from solarhub.middleware.actor import current_actor
from solarhub.services import directory_service as svc
from solarhub.utils.errors import register_error_handlers

directory_bp = Blueprint("directory", __name__, url_prefix="/api/v1")
register_error_handlers(directory_bp)


def _items(records):
    return jsonify({"items": [r.to_dict() for r in records], "total": len(records)})


# ── Investors ────────────────────────────────────────────────────────────────

@directory_bp.route("/investors", methods=["GET"])
def list_investors():
    return _items(svc.list_investors(include_deleted=include_deleted_arg(), search=request.args.get("q")))


@directory_bp.route("/investors", methods=["POST"])
def create_investor():
    return jsonify(svc.create_investor(json_body(), actor=current_actor()).to_dict()), 201


@directory_bp.route("/investors/<int:investor_id>", methods=["GET"])
def get_investor(investor_id):
    return jsonify(svc.get_investor(investor_id).to_dict())


@directory_bp.route("/investors/<int:investor_id>", methods=["PUT"])
def update_investor(investor_id):
    return jsonify(svc.update_investor(investor_id, json_body(), actor=current_actor()).to_dict())


@directory_bp.route("/investors/<int:investor_id>/contacts", methods=["GET"])
def list_investor_contacts(investor_id):
    return _items(svc.list_investor_contacts(investor_id))


@directory_bp.route("/investors/<int:investor_id>/contacts", methods=["POST"])
def create_investor_contact(investor_id):
    contact = svc.create_investor_contact(investor_id, json_body(), actor=current_actor())
    return jsonify(contact.to_dict()), 201


# ── Partners ─────────────────────────────────────────────────────────────────

@directory_bp.route("/partners", methods=["GET"])
def list_partners():
    return _items(svc.list_partners(
        include_deleted=include_deleted_arg(), partner_type=request.args.get("partner_type"),
    ))


@directory_bp.route("/partners", methods=["POST"])
def create_partner():
    return jsonify(svc.create_partner(json_body(), actor=current_actor()).to_dict()), 201


@directory_bp.route("/partners/<int:partner_id>", methods=["GET"])
def get_partner(partner_id):
    return jsonify(svc.get_partner(partner_id).to_dict())


@directory_bp.route("/partners/<int:partner_id>", methods=["PUT"])
def update_partner(partner_id):
    return jsonify(svc.update_partner(partner_id, json_body(), actor=current_actor()).to_dict())


@directory_bp.route("/partners/<int:partner_id>/contacts", methods=["GET"])
def list_partner_contacts(partner_id):
    return _items(svc.list_partner_contacts(partner_id))


@directory_bp.route("/partners/<int:partner_id>/contacts", methods=["POST"])
def create_partner_contact(partner_id):
    contact = svc.create_partner_contact(partner_id, json_body(), actor=current_actor())
    return jsonify(contact.to_dict()), 201
