# app/api/deps.py

from fastapi import HTTPException, Request, status

from pipeline.exceptions import (
    PipelineError,
    ConfigurationError,
    NotFoundError,
    ConflictError,
    FileMissingError,
)
from pipeline.state import PipelineContext

_STATUS_CODES = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (FileMissingError, status.HTTP_404_NOT_FOUND),
    (ConfigurationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
)


def get_pipeline(request: Request) -> PipelineContext:
    ctx = getattr(request.app.state, "pipeline", None)
    if ctx is None:
        raise HTTPException(status_code=503, detail="파이프라인이 초기화되지 않았습니다.")
    return ctx


def to_http_error(error: PipelineError) -> HTTPException:
    for error_type, code in _STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=code, detail=error.message)
    return HTTPException(status_code=500, detail=error.message)
