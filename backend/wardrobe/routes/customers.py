# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..models import Customer
from ..services import listing_service
from ..validation import ensure_valid, validate_customer, validate_customer_patch
from .helpers import get_processor, json_body


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("/")
def register_customer_route():
    try:
        request_data = ensure_valid(validate_customer(json_body()))
        result = get_processor().register_customer(request_data)
        return jsonify({"customer": result.document.to_dict()}), 201
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to register customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/")
def list_customers_route():
    """Customers by name, optionally narrowed by nome/email/telefone substrings."""
    try:
        customers = listing_service.list_customers(
            nome=request.args.get("nome"),
            email=request.args.get("email"),
            telefone=request.args.get("telefone"),
        )
        return jsonify({"customers": [customer.to_dict() for customer in customers]}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = get_processor().fetch(Customer, customer_id)
        data = customer.to_dict()
        data["condicionais"] = [loan.id for loan in customer.conditional_loans]
        return jsonify({"customer": data}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to load customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.patch("/<int:customer_id>")
def update_customer_route(customer_id: int):
    try:
        patch = ensure_valid(validate_customer_patch(json_body()))
        result = get_processor().update_customer(customer_id, patch)
        return jsonify({"customer": result.document.to_dict()}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500
