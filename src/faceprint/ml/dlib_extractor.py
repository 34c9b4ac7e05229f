"""dlib alignment + dlib ResNet v1 embeddings on ONNX Runtime.

Pipeline per face:
    5-point shape predictor -> face chip (size x size RGB, [0, 1])
    -> ResNet v1 (NHWC, 1 x size x size x 3) -> subtract mean -> L2 normalize
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import dlib
import numpy as np

from faceprint.errors import ExtractionError, InitializationError
from faceprint.ml.embedding import postprocess_embedding
from faceprint.ml.runtime import create_session

if TYPE_CHECKING:
    from pathlib import Path

    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

    from faceprint.config import Settings
    from faceprint.ml.regions import Rect

logger = logging.getLogger(__name__)

LANDMARK_COUNT = 5


class DlibOnnxExtractor:
    """Feature extractor backed by a dlib shape predictor and an ONNX ResNet."""

    thread_safe = False

    def __init__(self, landmark_model_path: Path, embedding_model_path: Path, settings: Settings) -> None:
        try:
            self._predictor = dlib.shape_predictor(str(landmark_model_path))
        except Exception as exc:
            raise InitializationError(f"Failed to load landmark model {landmark_model_path}") from exc
        try:
            self._session: InferenceSession = create_session(embedding_model_path, settings)
        except Exception as exc:
            self._predictor = None
            raise InitializationError(f"Failed to load embedding model {embedding_model_path}") from exc
        self._input_name = self._session.get_inputs()[0].name

    def align_face(self, image: NDArray[np.uint8], rect: Rect, size: int, padding: float) -> NDArray[np.float32]:
        rgb = np.ascontiguousarray(image[:, :, :3])
        try:
            shape = self._predictor(rgb, dlib.rectangle(rect.left, rect.top, rect.right, rect.bottom))
        except Exception as exc:
            raise ExtractionError("Landmark prediction failed") from exc
        if shape.num_parts != LANDMARK_COUNT:
            raise ExtractionError(f"Predictor returned {shape.num_parts} points, expected {LANDMARK_COUNT}")
        try:
            chip = dlib.get_face_chip(rgb, shape, size=size, padding=padding)
        except Exception as exc:
            raise ExtractionError("Face chip extraction failed") from exc
        return np.asarray(chip, dtype=np.float32) / np.float32(255.0)

    def extract_embedding(
        self, image: NDArray[np.uint8], rect: Rect, size: int, padding: float
    ) -> NDArray[np.float32]:
        crop = self.align_face(image, rect, size, padding)
        tensor = crop.reshape(1, size, size, 3)
        try:
            outputs = self._session.run(None, {self._input_name: tensor})
        except Exception as exc:
            raise ExtractionError("Embedding inference failed") from exc
        return postprocess_embedding(outputs[0])

    def close(self) -> None:
        self._predictor = None
        self._session = None  # type: ignore[assignment]
        logger.debug("Released dlib predictor and ONNX session")
