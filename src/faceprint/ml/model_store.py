"""Model store: resolve model files to local paths.

A model file already present in the models directory is used as is.
Missing files are downloaded from a HuggingFace repository when one is
configured; otherwise resolution fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from huggingface_hub import hf_hub_download

from faceprint.errors import InitializationError

if TYPE_CHECKING:
    from faceprint.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------


class ModelRole(StrEnum):
    LANDMARKS = "landmarks"
    EMBEDDING = "embedding"


@dataclass(frozen=True)
class ModelSpec:
    """Static metadata for a single model file."""

    name: str
    filename: str
    role: ModelRole
    license: str


MODEL_REGISTRY: dict[str, ModelSpec] = {
    "dlib_landmarks_5": ModelSpec(
        name="dlib_landmarks_5",
        filename="shape_predictor_5_face_landmarks_8cf06d8d2c988ec6.dat",
        role=ModelRole.LANDMARKS,
        license="CC0-1.0",
    ),
    "dlib_resnet_v1": ModelSpec(
        name="dlib_resnet_v1",
        filename="dlib_face_recognition_resnet_v1.onnx",
        role=ModelRole.EMBEDDING,
        license="CC0-1.0",
    ),
}


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ModelStore:
    """Resolves registry entries to readable local files."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._models_dir = Path(settings.models_dir)

    @property
    def models_dir(self) -> Path:
        return self._models_dir

    def resolve(self, model_name: str) -> Path:
        """Return the local path of a model, downloading it if needed.

        Raises:
            InitializationError: If the model is unknown, missing with no
                repository configured, or the download fails.
        """
        spec = self._get_spec(model_name)
        local = self._models_dir / spec.filename
        if local.is_file():
            logger.debug("Using local model %s at %s", model_name, local)
            return local

        repo_id = self._settings.model_repo
        if repo_id is None:
            raise InitializationError(
                f"Model file {local} not found and no model repository configured (FACEPRINT_MODEL_REPO)"
            )

        self._models_dir.mkdir(parents=True, exist_ok=True)
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=spec.filename,
                    local_dir=str(self._models_dir),
                )
            )
        except Exception as exc:
            raise InitializationError(f"Failed to download model {model_name} from {repo_id}") from exc
        logger.info("Downloaded %s to %s", model_name, downloaded)
        return downloaded

    def resolve_engine_models(self) -> tuple[Path, Path]:
        """Resolve the configured (landmark, embedding) model pair."""
        landmark = self._settings.landmark_model
        embedding = self._settings.embedding_model
        self._check_role(landmark, ModelRole.LANDMARKS)
        self._check_role(embedding, ModelRole.EMBEDDING)
        return self.resolve(landmark), self.resolve(embedding)

    # -- Internal -----------------------------------------------------------

    @staticmethod
    def _get_spec(model_name: str) -> ModelSpec:
        try:
            return MODEL_REGISTRY[model_name]
        except KeyError:
            raise InitializationError(f"Unknown model: {model_name}") from None

    def _check_role(self, model_name: str, role: ModelRole) -> None:
        spec = self._get_spec(model_name)
        if spec.role != role:
            raise InitializationError(f"Model '{model_name}' is a {spec.role} model, expected {role}")
