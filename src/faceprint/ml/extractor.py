"""Feature extractor protocol.

Implementations: dlib 5-point alignment + dlib ResNet v1 (ONNX), see
``faceprint.ml.dlib_extractor``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from faceprint.ml.regions import Rect


class FeatureExtractor(Protocol):
    """Protocol for the native alignment + embedding engine."""

    @property
    def thread_safe(self) -> bool:
        """Whether native calls may be issued concurrently from several threads."""
        ...

    def align_face(self, image: NDArray[np.uint8], rect: Rect, size: int, padding: float) -> NDArray[np.float32]:
        """Produce an aligned face crop.

        Args:
            image: HxWx3 RGB uint8 array.
            rect: Face rectangle, already clamped to the image.
            size: Edge length of the square crop.
            padding: Fraction of the face size added on every side before resampling.

        Returns:
            size x size x 3 float32 array with values in [0, 1].
        """
        ...

    def extract_embedding(
        self, image: NDArray[np.uint8], rect: Rect, size: int, padding: float
    ) -> NDArray[np.float32]:
        """Align the face, then run the embedding network on the crop.

        Returns:
            1-D float32 embedding vector.
        """
        ...

    def close(self) -> None:
        """Release native resources."""
        ...
