# Overview: Flask API routes for sales; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, ValidationFailed
from ..models import Sale
from ..services import listing_service
from ..validation import ensure_valid, validate_sale
from .helpers import amount_arg, get_processor, json_body, range_args


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
def create_sale_route():
    """
    Commit a multi-line sale.

    Returns:
    - 201: sale committed, items updated
    - 400: validation errors (every violated field)
    - 404: an item reference did not resolve
    - 409: insufficient stock, invalid transition or concurrent conflict
    """
    try:
        sale_request = ensure_valid(validate_sale(json_body()))
        result = get_processor().create_sale(sale_request)
        return jsonify(result.to_dict()), 201
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = get_processor().fetch(Sale, sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
def list_sales_route():
    """Sales newest first, filtered by date range, payment method and total."""
    try:
        errors = []
        valor_min = amount_arg("valor_min", errors)
        valor_max = amount_arg("valor_max", errors)
        if errors:
            raise ValidationFailed(errors)
        sales = listing_service.list_sales(
            forma_pgto=request.args.get("forma_pgto"),
            valor_min=valor_min,
            valor_max=valor_max,
            **range_args(),
        )
        return jsonify({"sales": [sale.to_dict() for sale in sales]}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500
