"""Environment-based configuration for Faceprint."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from FACEPRINT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACEPRINT_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Worker pool
    max_concurrent: int = Field(default=2, ge=1)
    queue_timeout: float | None = Field(default=30.0, gt=0)

    # Model provisioning
    models_dir: str = "models"
    model_repo: str | None = None
    landmark_model: str = "dlib_landmarks_5"
    embedding_model: str = "dlib_resnet_v1"

    # Alignment
    crop_size: int = Field(default=150, gt=1)
    padding: float = Field(default=0.25, ge=0.0)

    # Comparison
    comparison_chunk_size: int = Field(default=100, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
