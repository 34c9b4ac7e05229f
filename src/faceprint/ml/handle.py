"""Owned, lifetime-bound handle to a feature extractor.

The handle is opened once, released exactly once, and rejects every call
after release. Extractors that are not thread-safe get their native calls
serialized behind a lock.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from faceprint.errors import ClosedEngineError, ExtractionError, FaceprintError, InitializationError
from faceprint.ml.regions import clamp_rect
from faceprint.ml.template import FACE_TEMPLATE_V16

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from numpy.typing import NDArray

    from faceprint.config import Settings
    from faceprint.ml.extractor import FeatureExtractor
    from faceprint.ml.regions import Rect
    from faceprint.ml.template import TemplateVersion

logger = logging.getLogger(__name__)


def _check_readable(path: Path, kind: str) -> None:
    if not path.is_file():
        raise InitializationError(f"{kind} model not found: {path}")
    try:
        with path.open("rb") as f:
            f.read(1)
    except OSError as exc:
        raise InitializationError(f"{kind} model is not readable: {path}") from exc


class ExtractorHandle:
    """Owns a FeatureExtractor for the lifetime of an engine."""

    def __init__(
        self,
        extractor: FeatureExtractor,
        version: TemplateVersion = FACE_TEMPLATE_V16,
        *,
        crop_size: int = 150,
        padding: float = 0.25,
    ) -> None:
        self._extractor: FeatureExtractor | None = extractor
        self._version = version
        self._crop_size = crop_size
        self._padding = padding

        self._state = threading.Condition()
        self._in_flight = 0
        self._call_lock = nullcontext() if extractor.thread_safe else threading.Lock()

    @classmethod
    def open(
        cls, landmark_model_path: Path | str, embedding_model_path: Path | str, settings: Settings
    ) -> ExtractorHandle:
        """Load both models into the dlib/ONNX backend.

        Raises:
            InitializationError: If a model file is unreadable or rejected by the backend.
        """
        landmark_path = Path(landmark_model_path)
        embedding_path = Path(embedding_model_path)
        _check_readable(landmark_path, "Landmark")
        _check_readable(embedding_path, "Embedding")

        try:
            from faceprint.ml.dlib_extractor import DlibOnnxExtractor
        except ImportError as exc:
            raise InitializationError("dlib is not installed; install the 'faceprint[dlib]' extra") from exc

        extractor = DlibOnnxExtractor(landmark_path, embedding_path, settings)
        logger.info("Opened feature extractor (landmarks=%s, embedding=%s)", landmark_path.name, embedding_path.name)
        return cls(extractor, FACE_TEMPLATE_V16, crop_size=settings.crop_size, padding=settings.padding)

    @property
    def version(self) -> TemplateVersion:
        return self._version

    @property
    def closed(self) -> bool:
        with self._state:
            return self._extractor is None

    # -- Native calls -------------------------------------------------------

    def align_face(self, image: NDArray[np.uint8], rect: Rect) -> NDArray[np.float32]:
        """Return the aligned crop for ``rect`` in ``image``."""
        image = _check_image(image)
        clamped = clamp_rect(rect, image.shape[1], image.shape[0])
        with self._acquire() as extractor:
            try:
                crop = extractor.align_face(image, clamped, self._crop_size, self._padding)
            except FaceprintError:
                raise
            except Exception as exc:
                raise ExtractionError("Face alignment failed", details={"rect": rect}) from exc
        return np.asarray(crop, dtype=np.float32)

    def extract_embedding(self, image: NDArray[np.uint8], rect: Rect) -> NDArray[np.float32]:
        """Return the embedding for ``rect`` in ``image``.

        Raises:
            InvalidRegionError: If the rectangle lies outside the image.
            ExtractionError: If the native layer fails or returns a vector of the wrong length.
            ClosedEngineError: If the handle was released.
        """
        image = _check_image(image)
        clamped = clamp_rect(rect, image.shape[1], image.shape[0])
        with self._acquire() as extractor:
            try:
                embedding = extractor.extract_embedding(image, clamped, self._crop_size, self._padding)
            except FaceprintError:
                raise
            except Exception as exc:
                raise ExtractionError("Embedding extraction failed", details={"rect": rect}) from exc

        vector = np.asarray(embedding, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self._version.dimension:
            raise ExtractionError(
                f"Extractor returned {vector.shape[0]} values, version {self._version.name} "
                f"requires {self._version.dimension}"
            )
        return vector

    # -- Lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Release the extractor. Waits for in-flight calls; safe to call repeatedly."""
        with self._state:
            extractor = self._extractor
            if extractor is None:
                return
            self._extractor = None
            self._state.wait_for(lambda: self._in_flight == 0)
        extractor.close()
        logger.info("Released feature extractor")

    def __enter__(self) -> ExtractorHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @contextmanager
    def _acquire(self) -> Iterator[FeatureExtractor]:
        with self._state:
            extractor = self._extractor
            if extractor is None:
                raise ClosedEngineError("Feature extractor has been released")
            self._in_flight += 1
        try:
            with self._call_lock:
                yield extractor
        finally:
            with self._state:
                self._in_flight -= 1
                self._state.notify_all()


def _check_image(image: NDArray[np.uint8]) -> NDArray[np.uint8]:
    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ExtractionError(f"Image must be HxWx3 RGB or HxWx4 RGBA, got shape {arr.shape}")
    if arr.dtype != np.uint8:
        raise ExtractionError(f"Image must be uint8, got {arr.dtype}")
    if arr.shape[2] == 4:
        arr = arr[:, :, :3]
    return arr
