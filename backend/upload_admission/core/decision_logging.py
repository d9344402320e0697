"""Structured decision logging: one line per admission check (check, result, user_id, extras)."""
import json
import logging
from typing import Any

from upload_admission.core.config import get_settings
from upload_admission.core.errors import AdmissionError
from upload_admission.core.metrics import record_decision

logger = logging.getLogger("upload_admission.decision")


def configure_logging() -> None:
    """When log_json is set, emit decision lines as bare JSON (one object per line)."""
    if not get_settings().log_json:
        return
    for h in logger.handlers[:]:
        logger.removeHandler(h)
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(h)
    logger.setLevel(logging.INFO)


def log_decision(check: str, user_id: Any, error: AdmissionError | None = None, **extra: Any) -> None:
    result = error.kind.value if error is not None else "allowed"
    record_decision(check, result)
    fields: dict[str, Any] = {
        "check": check,
        "result": result,
        "user_id": str(user_id) if user_id is not None else None,
    }
    if error is not None:
        fields["reason"] = error.message
    fields.update(extra)
    if get_settings().log_json:
        logger.info(json.dumps({"event": "upload_admission", **fields}, default=str))
    else:
        logger.info("admission %s %s user=%s", check, result, fields["user_id"], extra=fields)
