"""Maps sync engine errors to HTTP responses with an {"error", "message"} body."""

from fastapi import Request
from fastapi.responses import JSONResponse

from pagesync.core.errors import SyncError
from pagesync.core.logging import get_logger
from pagesync.schemas.api import ErrorResponse

log = get_logger("api.errors")


class UnauthorizedError(SyncError):
    kind = "unauthorized"


STATUS_BY_KIND = {
    "unauthorized": 401,
    "unknown_data_source": 404,
    "validation_error": 422,
    "source_error": 502,
    "repository_error": 500,
    "config_error": 500,
}


def status_for(exc: SyncError) -> int:
    return STATUS_BY_KIND.get(exc.kind, 500)


def error_response(exc: SyncError) -> JSONResponse:
    body = ErrorResponse(error=exc.kind, message=exc.message)
    ids = {"document_id": exc.document_id, "data_source_id": exc.data_source_id}
    if any(ids.values()):
        body.details = {key: value for key, value in ids.items() if value}
    return JSONResponse(status_code=status_for(exc), content=body.model_dump(exclude_none=True))


async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc}")
    else:
        log.warning(f"{request.method} {request.url.path} rejected ({status}): {exc}")
    return error_response(exc)
