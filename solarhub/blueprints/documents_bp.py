"""
SolarHub Back-Office
Documents blueprint.

Endpoints:
    GET  /api/v1/documents                                — list (filters: project_id, derived_status, doc_type_code)
    POST /api/v1/documents                                — create
    GET  /api/v1/documents/<id>                           — detail (includes derived_status)
    PUT  /api/v1/documents/<id>                           — update
    POST /api/v1/documents/batch-ocr                      — run OCR date extraction over eligible documents
    POST /api/v1/documents/batch-ocr/<run_id>/cancel      — stop dispatching a running batch
"""

from flask import Blueprint, jsonify, request

from solarhub.blueprints import include_deleted_arg, json_body
from solarhub.integrations.ocr_gateway import OcrConfigurationError
from solarhub.middleware.actor import current_actor
from solarhub.services import document_service, ocr_service
from solarhub.utils.errors import E, api_error, register_error_handlers
from solarhub.utils.helpers import parse_bool

documents_bp = Blueprint("documents", __name__, url_prefix="/api/v1")
register_error_handlers(documents_bp)


@documents_bp.route("/documents", methods=["GET"])
def list_documents():
    docs = document_service.list_documents(
        project_id=request.args.get("project_id", type=int),
        derived_status=request.args.get("derived_status"),
        doc_type_code=request.args.get("doc_type_code"),
        include_deleted=include_deleted_arg(),
    )
    return jsonify({"items": [d.to_dict() for d in docs], "total": len(docs)})


@documents_bp.route("/documents", methods=["POST"])
def create_document():
    doc = document_service.create_document(json_body(), actor=current_actor())
    return jsonify(doc.to_dict()), 201


@documents_bp.route("/documents/<int:document_id>", methods=["GET"])
def get_document(document_id):
    doc = document_service.get_document(document_id, include_deleted=include_deleted_arg())
    return jsonify(doc.to_dict())


@documents_bp.route("/documents/<int:document_id>", methods=["PUT"])
def update_document(document_id):
    doc = document_service.update_document(document_id, json_body(), actor=current_actor())
    return jsonify(doc.to_dict())


@documents_bp.route("/documents/batch-ocr", methods=["POST"])
def batch_ocr():
    """
    Body (all optional):
        document_ids — restrict to these documents
        project_id   — restrict to one project
        auto_update  — write extracted dates back (default true)
        max_pages    — pages to scan per file (default 1)
        run_id       — caller-chosen id, usable with /batch-ocr/<run_id>/cancel
                       while this request is still running
    """
    data = json_body()
    try:
        report = ocr_service.start_batch_ocr(
            data.get("document_ids"),
            project_id=data.get("project_id"),
            actor=current_actor(),
            auto_update=parse_bool(data.get("auto_update", True)),
            max_pages=1 if data.get("max_pages") is None else data["max_pages"],
            run_id=data.get("run_id"),
        )
    except OcrConfigurationError as exc:
        return api_error(E.INTERNAL, str(exc), status=503)
    return jsonify(report)


@documents_bp.route("/documents/batch-ocr/<run_id>/cancel", methods=["POST"])
def cancel_batch_ocr(run_id):
    if not ocr_service.cancel_batch_ocr(run_id):
        return api_error(E.NOT_FOUND, f"No running batch {run_id}")
    return jsonify({"run_id": run_id, "cancelled": True})
