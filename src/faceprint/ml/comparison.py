"""Template comparison: one query against many candidates.

Scoring uses the squared-distance form on L2-normalized vectors::

    d2    = max(0, |q|^2 + |x|^2 - 2 q.x)
    score = clip(1 - d2 / 4, 0, 1)            # == (cos(q, x) + 1) / 2

Vectors are normalized internally in float64, so templates that are not
exactly unit length still score on the same scale. A zero vector carries no
identity and scores 0.0 against anything.

Large candidate lists are split into fixed-size chunks. Each chunk is scored
independently on the worker pool and writes into its own slice of one
pre-allocated output buffer, so results come back in input order no matter
which chunk finishes first. Every row is reduced on its own, which makes the
scores independent of the chunk size.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import numpy as np

from faceprint.errors import DimensionMismatchError
from faceprint.ml.template import stack_data

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from faceprint.ml.inference import InferencePool
    from faceprint.ml.template import FaceTemplate

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100


def is_match(score: float, threshold: float) -> bool:
    """Same-identity decision."""
    return score >= threshold


def _normalize_rows(matrix: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    norms = np.sqrt(np.sum(matrix * matrix, axis=1))
    nonzero = norms > 0.0
    safe = np.where(nonzero, norms, 1.0)
    return matrix / safe[:, np.newaxis], nonzero


def score_candidates(query: NDArray[np.floating], candidates: NDArray[np.floating]) -> NDArray[np.float64]:
    """Score every row of ``candidates`` against ``query``.

    Args:
        query: 1-D vector of length D.
        candidates: (N, D) matrix.

    Returns:
        (N,) float64 scores in [0, 1].
    """
    q64 = np.asarray(query, dtype=np.float64).reshape(1, -1)
    x64 = np.asarray(candidates, dtype=np.float64).reshape(-1, q64.shape[1])

    q_unit, q_nonzero = _normalize_rows(q64)
    x_unit, x_nonzero = _normalize_rows(x64)
    q = q_unit[0]

    q2 = np.sum(q * q)
    x2 = np.sum(x_unit * x_unit, axis=1)
    dot = np.sum(x_unit * q, axis=1)
    d2 = np.maximum(q2 + x2 - 2.0 * dot, 0.0)
    scores = np.clip(1.0 - 0.25 * d2, 0.0, 1.0)

    if not q_nonzero[0]:
        return np.zeros(x64.shape[0], dtype=np.float64)
    return np.where(x_nonzero, scores, 0.0)


def chunk_ranges(count: int, chunk_size: int) -> list[tuple[int, int]]:
    """Split ``range(count)`` into consecutive [start, stop) ranges."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [(start, min(start + chunk_size, count)) for start in range(0, count, chunk_size)]


def check_compatible(candidates: Sequence[FaceTemplate], query: FaceTemplate) -> None:
    """Raise DimensionMismatchError for the first candidate that cannot be compared with ``query``."""
    for index, candidate in enumerate(candidates):
        if len(candidate) != len(query):
            raise DimensionMismatchError(index, expected=len(query), actual=len(candidate))
        if candidate.version != query.version:
            raise DimensionMismatchError(index, expected=query.version.name, actual=candidate.version.name)


def _score_into(
    out: NDArray[np.float64],
    start: int,
    stop: int,
    query: NDArray[np.float32],
    candidates: NDArray[np.float32],
) -> None:
    out[start:stop] = score_candidates(query, candidates[start:stop])


def compare_templates(
    candidates: Sequence[FaceTemplate],
    query: FaceTemplate,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> list[float]:
    """Score candidates against ``query`` in the calling thread.

    Library entry point for callers without an event loop, such as batch
    scripts scoring stored templates. Scores are bit-identical to
    ``TemplateComparator.compare`` for the same inputs and do not need an
    open engine.

    Raises:
        DimensionMismatchError: If any candidate is incompatible with the query.
    """
    check_compatible(candidates, query)
    if not candidates:
        return []
    matrix = stack_data(candidates)
    out = np.empty(len(candidates), dtype=np.float64)
    for start, stop in chunk_ranges(len(candidates), chunk_size):
        _score_into(out, start, stop, query.data, matrix)
    return out.tolist()


class TemplateComparator:
    """Scores candidate templates against a query on the worker pool."""

    def __init__(self, pool: InferencePool, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._pool = pool
        self._chunk_size = chunk_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    async def compare(self, candidates: Sequence[FaceTemplate], query: FaceTemplate) -> list[float]:
        """Return one score per candidate, in candidate order.

        Raises:
            DimensionMismatchError: If any candidate is incompatible with the query.
        """
        check_compatible(candidates, query)
        if not candidates:
            return []

        matrix = stack_data(candidates)
        out = np.empty(len(candidates), dtype=np.float64)
        ranges = chunk_ranges(len(candidates), self._chunk_size)
        tasks = [
            asyncio.ensure_future(self._pool.run(_score_into, out, start, stop, query.data, matrix))
            for start, stop in ranges
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        logger.debug("Scored %d candidates in %d chunks", len(candidates), len(ranges))
        return out.tolist()
