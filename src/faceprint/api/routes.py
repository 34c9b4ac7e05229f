"""API route definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from faceprint.api.dependencies import get_app_settings, get_engine, verify_api_key
from faceprint.api.schemas import (
    CompareRequest,
    CompareResponse,
    EngineInfoResponse,
    ErrorResponse,
    HealthResponse,
)
from faceprint.errors import ClosedEngineError, DimensionMismatchError
from faceprint.ml.comparison import is_match
from faceprint.ml.template import KNOWN_VERSIONS, FaceTemplate

if TYPE_CHECKING:
    from faceprint.api.schemas import TemplatePayload

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


class _PayloadError(ValueError):
    pass


def _to_template(payload: TemplatePayload, field: str) -> FaceTemplate:
    version = KNOWN_VERSIONS.get(payload.version)
    if version is None:
        raise _PayloadError(f"{field}: unknown template version '{payload.version}'")
    try:
        return FaceTemplate(version, payload.data)
    except ValueError as exc:
        raise _PayloadError(f"{field}: {exc}") from exc


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


@router.post(
    "/compare",
    response_model=CompareResponse,
    responses={
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Compare templates against a query",
)
async def compare(body: CompareRequest, request: Request) -> CompareResponse | JSONResponse:
    """Score each candidate template against the query template."""
    engine = get_engine(request)
    try:
        query = _to_template(body.query, "query")
        candidates = [_to_template(c, f"candidates[{i}]") for i, c in enumerate(body.candidates)]
    except _PayloadError as exc:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    try:
        scores = await engine.compare_templates(candidates, query)
    except DimensionMismatchError as exc:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))
    except ClosedEngineError as exc:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
    except TimeoutError:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Comparison queue is full, try again later")

    threshold = query.version.default_threshold
    return CompareResponse(
        scores=scores,
        threshold=threshold,
        matches=[is_match(score, threshold) for score in scores],
    )


@router.get(
    "/engine",
    response_model=EngineInfoResponse,
    summary="Template version and models",
)
async def engine_info(request: Request) -> EngineInfoResponse:
    """Return the template version this instance produces and its models."""
    settings = get_app_settings(request)
    engine = get_engine(request)
    return EngineInfoResponse(
        version=engine.version.name,
        dimension=engine.version.dimension,
        default_threshold=engine.default_threshold,
        landmark_model=settings.landmark_model,
        embedding_model=settings.embedding_model,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = get_app_settings(request)
    engine = get_engine(request)
    return HealthResponse(
        status="ok" if not engine.closed else "closed",
        gpu=settings.device == "cuda",
        engine_open=not engine.closed,
        concurrent_requests=engine.pool.active_count,
        queue_depth=engine.pool.queue_depth,
    )
