# Overview: Shared plumbing for ledger routes; builds the request-scoped processor and reads query args.

from flask import current_app, request

from ..errors import FieldError
from ..extensions import db
from ..money import to_decimal
from ..services.transaction_processor import TransactionProcessor


def get_processor() -> TransactionProcessor:
    """Processor bound to the request's session and the app's retry/hook settings."""
    config = current_app.config
    return TransactionProcessor(
        db.session,
        retry_attempts=config.get("LEDGER_RETRY_ATTEMPTS", 3),
        retry_backoff=config.get("LEDGER_RETRY_BACKOFF", 0.1),
        hooks=current_app.extensions.get("ledger_hooks", []),
    )


def json_body():
    # None for a missing/invalid body; validators report it as missing fields
    return request.get_json(silent=True)


def range_args() -> dict:
    return {
        "data_inicio": request.args.get("data_inicio"),
        "data_fim": request.args.get("data_fim"),
    }


def amount_arg(name: str, errors: list):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return to_decimal(raw)
    except ValueError as exc:
        errors.append(FieldError(name, str(exc)))
        return None


def int_arg(name: str, errors: list):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    value = request.args.get(name, type=int)
    if value is None or value < 1:
        errors.append(FieldError(name, "must be a positive integer"))
        return None
    return value


def flag_arg(name: str, errors: list):
    """'true' / 'false' (any case) or absent; anything else is a field error."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.strip().lower()
    if lowered not in ("true", "false"):
        errors.append(FieldError(name, "must be true or false"))
        return None
    return lowered == "true"
