"""
SolarHub Back-Office
Projects blueprint — project records, milestones and progress.

Endpoints:
    GET  /api/v1/projects                                   — list (filters: status, investor_id, q)
    POST /api/v1/projects                                   — create
    GET  /api/v1/projects/stalled                           — stalled projects for the dashboard
    GET  /api/v1/projects/<id>                              — detail
    PUT  /api/v1/projects/<id>                              — update
    GET  /api/v1/projects/<id>/milestones                   — milestones per track with completion
    POST /api/v1/projects/<id>/milestones/<code>            — complete / reopen one milestone
    POST /api/v1/projects/<id>/progress/recalculate         — rewrite cached progress
"""

from flask import Blueprint, jsonify, request

from solarhub.blueprints import include_deleted_arg, json_body
from solarhub.middleware.actor import current_actor
from solarhub.services import progress_service, project_service
from solarhub.utils.errors import register_error_handlers
from solarhub.utils.helpers import parse_bool

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1")
register_error_handlers(projects_bp)


@projects_bp.route("/projects", methods=["GET"])
def list_projects():
    projects = project_service.list_projects(
        include_deleted=include_deleted_arg(),
        status=request.args.get("status"),
        investor_id=request.args.get("investor_id", type=int),
        search=request.args.get("q"),
    )
    return jsonify({"items": [p.to_dict() for p in projects], "total": len(projects)})


@projects_bp.route("/projects", methods=["POST"])
def create_project():
    project = project_service.create_project(json_body(), actor=current_actor())
    return jsonify(project.to_dict()), 201


@projects_bp.route("/projects/stalled", methods=["GET"])
def stalled_projects():
    return jsonify(progress_service.list_stalled_projects())


@projects_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    project = project_service.get_project(project_id, include_deleted=include_deleted_arg())
    return jsonify(project.to_dict())


@projects_bp.route("/projects/<int:project_id>", methods=["PUT"])
def update_project(project_id):
    project = project_service.update_project(project_id, json_body(), actor=current_actor())
    return jsonify(project.to_dict())


@projects_bp.route("/projects/<int:project_id>/milestones", methods=["GET"])
def project_milestones(project_id):
    return jsonify(progress_service.get_project_milestones(project_id))


@projects_bp.route("/projects/<int:project_id>/milestones/<milestone_code>", methods=["POST"])
def set_milestone(project_id, milestone_code):
    """Body: {"completed": true|false, "note": "..."} — completed defaults to true."""
    data = json_body()
    result = progress_service.set_milestone_completion(
        project_id,
        milestone_code,
        parse_bool(data.get("completed", True)),
        actor=current_actor(),
        note=data.get("note"),
    )
    return jsonify(result)


@projects_bp.route("/projects/<int:project_id>/progress/recalculate", methods=["POST"])
def recalculate_progress(project_id):
    return jsonify(progress_service.recalculate_project_progress(project_id, actor=current_actor()))
