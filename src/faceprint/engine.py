"""Engine facade: template creation and comparison behind one owned resource."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from faceprint.errors import ClosedEngineError
from faceprint.ml.comparison import TemplateComparator
from faceprint.ml.factory import TemplateFactory
from faceprint.ml.handle import ExtractorHandle
from faceprint.ml.inference import InferencePool
from faceprint.ml.model_store import ModelStore

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    import numpy as np
    from numpy.typing import NDArray

    from faceprint.config import Settings
    from faceprint.ml.regions import FaceRegion
    from faceprint.ml.template import FaceTemplate, TemplateVersion

logger = logging.getLogger(__name__)


class FaceTemplateEngine:
    """Creates and compares face templates.

    The engine owns its extractor handle and worker pool; ``close()``
    releases both. After closing, every operation raises ClosedEngineError.
    """

    def __init__(self, handle: ExtractorHandle, settings: Settings) -> None:
        self._handle = handle
        self._pool = InferencePool(settings.max_concurrent, settings.queue_timeout)
        self._factory = TemplateFactory(handle, self._pool)
        self._comparator = TemplateComparator(self._pool, settings.comparison_chunk_size)
        self._closed = False

    @classmethod
    def open(cls, settings: Settings) -> FaceTemplateEngine:
        """Resolve the configured models and open an engine on them.

        Raises:
            InitializationError: If a model cannot be resolved or loaded.
        """
        landmark_path, embedding_path = ModelStore(settings).resolve_engine_models()
        handle = ExtractorHandle.open(landmark_path, embedding_path, settings)
        try:
            engine = cls(handle, settings)
        except BaseException:
            handle.close()
            raise
        logger.info("Engine ready (version=%s, max_concurrent=%s)", engine.version.name, settings.max_concurrent)
        return engine

    @property
    def version(self) -> TemplateVersion:
        return self._handle.version

    @property
    def default_threshold(self) -> float:
        return self._handle.version.default_threshold

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pool(self) -> InferencePool:
        return self._pool

    async def create_templates(self, faces: Sequence[FaceRegion], image: NDArray[np.uint8]) -> list[FaceTemplate]:
        """Create one template per face in ``image``, in input order."""
        self._check_open()
        return await self._factory.create_templates(faces, image)

    async def compare_templates(self, candidates: Sequence[FaceTemplate], query: FaceTemplate) -> list[float]:
        """Score every candidate against ``query``; scores are in [0, 1]."""
        self._check_open()
        return await self._comparator.compare(candidates, query)

    async def close(self) -> None:
        """Release the extractor and shut down the pool. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        # Both block until running native calls finish.
        await asyncio.to_thread(self._handle.close)
        await asyncio.to_thread(self._pool.shutdown)
        logger.info("Engine closed")

    async def __aenter__(self) -> FaceTemplateEngine:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise ClosedEngineError()
