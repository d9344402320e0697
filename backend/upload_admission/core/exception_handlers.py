"""FastAPI exception handlers: AdmissionError kinds -> HTTP status + {"error", "detail"} body."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from upload_admission.core.errors import AdmissionError, ErrorKind, SettingsSourceError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.FILE_TOO_LARGE: 413,
    ErrorKind.FILE_TYPE_NOT_SUPPORTED: 415,
    ErrorKind.FOLDER_NOT_FOUND: 404,
    ErrorKind.DB_QUERY_FAILED: 500,
    ErrorKind.INVALID_PARAMETER: 400,
    ErrorKind.UPLOAD_LIMIT_EXCEEDED: 429,
}


async def admission_error_handler(request: Request, exc: AdmissionError) -> JSONResponse:
    code = STATUS_BY_KIND.get(exc.kind, 400)
    if code >= 500:
        # Cause may include SQL; keep it out of the response
        logger.error("Admission check failed on %s: %r", request.url.path, exc.cause)
        detail = "Upload could not be evaluated"
    else:
        detail = exc.message
    return JSONResponse(status_code=code, content={"error": exc.kind.value, "detail": detail})


async def settings_unavailable_handler(request: Request, exc: SettingsSourceError) -> JSONResponse:
    logger.error("Settings unavailable on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "settings_unavailable", "detail": "Upload policy is temporarily unavailable"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AdmissionError, admission_error_handler)
    app.add_exception_handler(SettingsSourceError, settings_unavailable_handler)
