# Overview: Flask API routes for conditional loans; open, partial return and close.

from flask import Blueprint, current_app, jsonify

from ..errors import LedgerError, ValidationFailed
from ..models import ConditionalLoan
from ..services import listing_service
from ..validation import ensure_valid, validate_loan, validate_loan_close, validate_loan_return
from .helpers import flag_arg, get_processor, int_arg, json_body, range_args


loans_bp = Blueprint("loans", __name__, url_prefix="/api/loans")


@loans_bp.post("/")
def open_loan_route():
    try:
        loan_request = ensure_valid(validate_loan(json_body()))
        result = get_processor().open_loan(loan_request)
        return jsonify(result.to_dict()), 201
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to open conditional loan")
        return jsonify({"error": "Internal server error"}), 500


@loans_bp.get("/<int:loan_id>")
def get_loan_route(loan_id: int):
    try:
        loan = get_processor().fetch(ConditionalLoan, loan_id)
        return jsonify({"loan": loan.to_dict()}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to load conditional loan")
        return jsonify({"error": "Internal server error"}), 500


@loans_bp.post("/<int:loan_id>/return-item")
def return_loan_item_route(loan_id: int):
    try:
        return_request = ensure_valid(validate_loan_return(json_body()))
        result = get_processor().return_loan_item(loan_id, return_request)
        return jsonify(result.to_dict()), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to return conditional loan item")
        return jsonify({"error": "Internal server error"}), 500


@loans_bp.post("/<int:loan_id>/close")
def close_loan_route(loan_id: int):
    """
    Close a loan.

    Body {"devolvido": true} returns everything; {"devolvido": false, "forma_pgto": ...}
    converts it into a sale.
    """
    try:
        close_request = ensure_valid(validate_loan_close(json_body()))
        result = get_processor().close_loan(loan_id, close_request)
        return jsonify(result.to_dict()), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to close conditional loan")
        return jsonify({"error": "Internal server error"}), 500


@loans_bp.get("/")
def list_loans_route():
    """
    List conditional loans.

    Query: cliente_id, data_inicio, data_fim, devolvido=true|false and
    vencidos=true for open loans past their due date.
    """
    try:
        errors = []
        cliente_id = int_arg("cliente_id", errors)
        devolvido = flag_arg("devolvido", errors)
        vencidos = flag_arg("vencidos", errors)
        if errors:
            raise ValidationFailed(errors)
        loans = listing_service.list_loans(
            cliente_id=cliente_id,
            devolvido=devolvido,
            vencidos=bool(vencidos),
            **range_args(),
        )
        return jsonify({"loans": [loan.to_dict() for loan in loans]}), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to list conditional loans")
        return jsonify({"error": "Internal server error"}), 500
