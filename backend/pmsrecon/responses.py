# Overview: Uniform JSON envelope for API responses.

from flask import jsonify

from .errors import PmsError


def success(data=None, status: int = 200):
    return jsonify({"is_success": True, "data": data}), status


def failure(exc: PmsError):
    return jsonify({"is_success": False, **exc.to_dict()}), exc.status_code


def bad_request(message: str, field: str | None = None):
    body = {"is_success": False, "error": message, "code": "VALIDATION_ERROR"}
    if field:
        body["field"] = field
    return jsonify(body), 400


def server_error():
    return jsonify({"is_success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"}), 500
