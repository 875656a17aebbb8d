# Overview: Flask API routes for ledger statistics; read-only aggregates over a date range.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, ValidationFailed
from ..services import reporting_service
from .helpers import amount_arg, range_args


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
def summary_report():
    try:
        return jsonify(reporting_service.summary(**range_args())), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to build summary report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/sales")
def sales_report():
    try:
        errors = []
        valor_min = amount_arg("valor_min", errors)
        valor_max = amount_arg("valor_max", errors)
        if errors:
            raise ValidationFailed(errors)
        report = reporting_service.sales_stats(
            forma_pgto=request.args.get("forma_pgto"),
            valor_min=valor_min,
            valor_max=valor_max,
            **range_args(),
        )
        return jsonify(report), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/purchases")
def purchases_report():
    try:
        report = reporting_service.purchase_stats(
            fornecedor=request.args.get("fornecedor"),
            **range_args(),
        )
        return jsonify(report), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to build purchases report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/loans")
def loans_report():
    try:
        return jsonify(reporting_service.loan_stats(**range_args())), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to build loans report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/write-offs")
def write_offs_report():
    try:
        return jsonify(reporting_service.write_off_stats(**range_args())), 200
    except LedgerError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to build write-offs report")
        return jsonify({"error": "Internal server error"}), 500
