# Overview: Flask API routes for purchases; open-document editing and finalization.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, ValidationFailed
from ..models import Purchase
from ..services import listing_service
from ..validation import (
    ensure_valid,
    validate_purchase,
    validate_purchase_line,
    validate_purchase_line_patch,
)
from .helpers import amount_arg, get_processor, json_body, range_args


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("/")
def create_purchase_route():
    """Create an OPEN purchase. Stock changes only on finalize."""
    try:
        purchase_request = ensure_valid(validate_purchase(json_body()))
        result = get_processor().create_purchase(purchase_request)
        return jsonify(result.to_dict()), 201
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        purchase = get_processor().fetch(Purchase, purchase_id)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to load purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/lines")
def add_purchase_line_route(purchase_id: int):
    try:
        line_request = ensure_valid(validate_purchase_line(json_body()))
        result = get_processor().add_purchase_line(purchase_id, line_request)
        return jsonify(result.to_dict()), 201
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to add purchase line")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.patch("/<int:purchase_id>/lines/<int:line_id>")
def update_purchase_line_route(purchase_id: int, line_id: int):
    try:
        patch = ensure_valid(validate_purchase_line_patch(json_body()))
        result = get_processor().update_purchase_line(purchase_id, line_id, patch)
        return jsonify(result.to_dict()), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to update purchase line")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.delete("/<int:purchase_id>/lines/<int:line_id>")
def remove_purchase_line_route(purchase_id: int, line_id: int):
    try:
        result = get_processor().remove_purchase_line(purchase_id, line_id)
        return jsonify(result.to_dict()), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to remove purchase line")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/finalize")
def finalize_purchase_route(purchase_id: int):
    """
    Apply the purchase to stock.

    Re-finalizing answers 200 with applied=false and changes nothing.
    """
    try:
        result = get_processor().finalize_purchase(purchase_id)
        return jsonify(result.to_dict()), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to finalize purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/")
def list_purchases_route():
    """Purchases newest first; filter by supplier, status (OPEN/FINALIZED) and paid value."""
    try:
        errors = []
        valor_min = amount_arg("valor_min", errors)
        valor_max = amount_arg("valor_max", errors)
        if errors:
            raise ValidationFailed(errors)
        purchases = listing_service.list_purchases(
            fornecedor=request.args.get("fornecedor"),
            status=request.args.get("status"),
            valor_min=valor_min,
            valor_max=valor_max,
            **range_args(),
        )
        return jsonify({"purchases": [purchase.to_dict() for purchase in purchases]}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to list purchases")
        return jsonify({"error": "Internal server error"}), 500
