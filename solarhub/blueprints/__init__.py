"""
SolarHub Back-Office
Blueprint registry and shared request helpers.
"""

from flask import request

from solarhub.utils.helpers import parse_bool


def json_body() -> dict:
    """Return the JSON request body, or an empty dict for a missing/invalid body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def include_deleted_arg() -> bool:
    """``?include_deleted=1`` switch used by list endpoints."""
    return parse_bool(request.args.get("include_deleted"))
