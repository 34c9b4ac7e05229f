"""Template factory: face regions + image -> templates."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from faceprint.ml.regions import round_region
from faceprint.ml.template import FaceTemplate

if TYPE_CHECKING:
    from collections.abc import Sequence

    import numpy as np
    from numpy.typing import NDArray

    from faceprint.ml.handle import ExtractorHandle
    from faceprint.ml.inference import InferencePool
    from faceprint.ml.regions import FaceRegion

logger = logging.getLogger(__name__)


class TemplateFactory:
    """Creates one template per face region, all or nothing."""

    def __init__(self, handle: ExtractorHandle, pool: InferencePool) -> None:
        self._handle = handle
        self._pool = pool

    async def create_templates(self, faces: Sequence[FaceRegion], image: NDArray[np.uint8]) -> list[FaceTemplate]:
        """Extract a template for every face, preserving input order.

        Extractions run concurrently on the pool. If any face fails, the
        remaining work is cancelled and that face's error is raised.
        """
        if not faces:
            return []

        rects = [round_region(face) for face in faces]
        tasks = [asyncio.ensure_future(self._pool.run(self._handle.extract_embedding, image, rect)) for rect in rects]
        try:
            embeddings = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        version = self._handle.version
        logger.debug("Created %d templates (version=%s)", len(embeddings), version.name)
        return [FaceTemplate(version, embedding) for embedding in embeddings]
