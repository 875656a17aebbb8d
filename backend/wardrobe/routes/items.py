# Overview: Flask API routes for the item registry; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..validation import ensure_valid, validate_item, validate_item_patch
from .helpers import get_processor, json_body


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.post("/")
def register_item_route():
    """Register an item with quantity 0; stock arrives through purchases."""
    try:
        descriptor = ensure_valid(validate_item(json_body()))
        result = get_processor().register_item(descriptor)
        return jsonify(result.to_dict()), 201
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to register item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/")
def search_items_route():
    try:
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        items = get_processor().items.search(
            request.args.get("search"),
            include_inactive=include_inactive,
        )
        return jsonify({"items": [item.to_dict() for item in items]}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to search items")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/<int:item_id>")
def get_item_route(item_id: int):
    """Current quantity, status (from history) and the full status history."""
    try:
        state = get_processor().item_state(item_id)
        return jsonify({"item": state.to_dict()}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to load item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.patch("/<int:item_id>")
def update_item_route(item_id: int):
    try:
        patch = ensure_valid(validate_item_patch(json_body()))
        result = get_processor().update_item(item_id, patch)
        return jsonify(result.to_dict()), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to update item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.delete("/<int:item_id>")
def deactivate_item_route(item_id: int):
    """Soft removal; history and documents keep referencing the item."""
    try:
        result = get_processor().deactivate_item(item_id)
        return jsonify(result.to_dict()), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to deactivate item")
        return jsonify({"error": "Internal server error"}), 500
