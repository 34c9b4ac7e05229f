"""Face regions and integer rectangles."""

from __future__ import annotations

import math
from dataclasses import dataclass

from faceprint.errors import InvalidRegionError


@dataclass(frozen=True)
class FaceRegion:
    """Sub-pixel face bounds as reported by a face detector.

    Coordinates are in pixel space of the image the face was detected in.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class Rect:
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def round_region(face: FaceRegion) -> Rect:
    """Round each edge of ``face`` to the nearest pixel, halves rounding up.

    No clamping is applied; out-of-image edges are handled by the extractor handle.
    """
    return Rect(
        left=_round_half_up(face.x),
        top=_round_half_up(face.y),
        right=_round_half_up(face.right),
        bottom=_round_half_up(face.bottom),
    )


def clamp_rect(rect: Rect, width: int, height: int) -> Rect:
    """Clamp ``rect`` to an image of the given size.

    Raises:
        InvalidRegionError: If nothing of the rectangle remains inside the image.
    """
    if width < 1 or height < 1:
        raise InvalidRegionError(f"Image of size {width}x{height} has no pixels")
    clamped = Rect(
        left=min(max(rect.left, 0), width - 1),
        top=min(max(rect.top, 0), height - 1),
        right=min(max(rect.right, 0), width - 1),
        bottom=min(max(rect.bottom, 0), height - 1),
    )
    if clamped.right <= clamped.left or clamped.bottom <= clamped.top:
        raise InvalidRegionError(
            "Face rectangle out of bounds",
            details={"rect": rect, "image_size": (width, height)},
        )
    return clamped
