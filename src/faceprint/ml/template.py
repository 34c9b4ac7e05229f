"""Face template value object and template versions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Iterable

    from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True)
class TemplateVersion:
    """Identifies an embedding space.

    Templates of the same version have the same length and can be compared.
    ``default_threshold`` is the calibrated score at or above which two
    templates of this version are declared the same identity.
    """

    name: str
    dimension: int
    default_threshold: float


# dlib ResNet v1 embeddings. 0.91 on the (cos + 1) / 2 scale is dlib's
# Euclidean distance cutoff of 0.6 between unit vectors.
FACE_TEMPLATE_V16 = TemplateVersion(name="v16", dimension=128, default_threshold=0.91)

KNOWN_VERSIONS: dict[str, TemplateVersion] = {
    FACE_TEMPLATE_V16.name: FACE_TEMPLATE_V16,
}


class FaceTemplate:
    """Immutable face descriptor: a version tag plus a float32 vector.

    Equality and hashing are by content.
    """

    __slots__ = ("_data", "_version")

    def __init__(self, version: TemplateVersion, data: ArrayLike) -> None:
        arr = np.array(data, dtype=np.float32)
        if arr.ndim != 1:
            raise ValueError(f"Template data must be one-dimensional, got shape {arr.shape}")
        if arr.shape[0] != version.dimension:
            raise ValueError(
                f"Template version {version.name} requires {version.dimension} values, got {arr.shape[0]}"
            )
        if not np.all(np.isfinite(arr)):
            raise ValueError("Template data must be finite")
        # -0.0 + 0.0 == +0.0, so equal templates also have equal bytes.
        arr += np.float32(0.0)
        arr.setflags(write=False)
        self._version = version
        self._data = arr

    @property
    def version(self) -> TemplateVersion:
        return self._version

    @property
    def data(self) -> NDArray[np.float32]:
        """Read-only view of the template vector."""
        return self._data

    def to_list(self) -> list[float]:
        return [float(v) for v in self._data]

    def __len__(self) -> int:
        return int(self._data.shape[0])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FaceTemplate):
            return NotImplemented
        return self._version == other._version and bool(np.array_equal(self._data, other._data))

    def __hash__(self) -> int:
        return hash((self._version, self._data.tobytes()))

    def __repr__(self) -> str:
        return f"FaceTemplate(version={self._version.name!r}, dimension={len(self)})"


def stack_data(templates: Iterable[FaceTemplate]) -> NDArray[np.float32]:
    """Stack template vectors into an (N, D) matrix."""
    rows = [t.data for t in templates]
    if not rows:
        return np.empty((0, 0), dtype=np.float32)
    return np.stack(rows)
