# Overview: Flask API routes for write-offs; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, ValidationFailed
from ..models import WriteOff
from ..services import listing_service
from ..validation import ensure_valid, validate_write_off
from .helpers import get_processor, int_arg, json_body, range_args


write_offs_bp = Blueprint("write_offs", __name__, url_prefix="/api/write-offs")


@write_offs_bp.post("/")
def record_write_off_route():
    """Record a write-off. Write-offs are irreversible and expose no DELETE route."""
    try:
        write_off_request = ensure_valid(validate_write_off(json_body()))
        result = get_processor().record_write_off(write_off_request)
        return jsonify(result.to_dict()), 201
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to record write-off")
        return jsonify({"error": "Internal server error"}), 500


@write_offs_bp.get("/<int:write_off_id>")
def get_write_off_route(write_off_id: int):
    try:
        write_off = get_processor().fetch(WriteOff, write_off_id)
        return jsonify({"write_off": write_off.to_dict()}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to load write-off")
        return jsonify({"error": "Internal server error"}), 500


@write_offs_bp.get("/")
def list_write_offs_route():
    try:
        errors = []
        roupas_id = int_arg("roupas_id", errors)
        if errors:
            raise ValidationFailed(errors)
        write_offs = listing_service.list_write_offs(
            motivo=request.args.get("motivo"),
            roupas_id=roupas_id,
            **range_args(),
        )
        return jsonify({"write_offs": [write_off.to_dict() for write_off in write_offs]}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to list write-offs")
        return jsonify({"error": "Internal server error"}), 500


@write_offs_bp.get("/reasons")
def write_off_reasons_route():
    return jsonify({"motivos": list(listing_service.WRITE_OFF_REASONS)}), 200
