"""Pydantic request/response schemas for the Faceprint API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TemplatePayload(BaseModel):
    """A face template on the wire."""

    version: str = Field(description="Template version tag, e.g. 'v16'")
    data: list[float] = Field(description="Template vector (128 values for v16)")


class CompareRequest(BaseModel):
    """One query template against a list of candidates."""

    query: TemplatePayload
    candidates: list[TemplatePayload]


class CompareResponse(BaseModel):
    """Per-candidate scores in candidate order."""

    scores: list[float] = Field(description="Similarity scores (0.0-1.0)")
    threshold: float = Field(description="Score at or above which two templates are the same identity")
    matches: list[bool]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    engine_open: bool
    concurrent_requests: int
    queue_depth: int


class EngineInfoResponse(BaseModel):
    """Template version and models served by this instance."""

    version: str
    dimension: int
    default_threshold: float
    landmark_model: str
    embedding_model: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
