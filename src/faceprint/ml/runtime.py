"""ONNX Runtime session construction."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from onnxruntime import GraphOptimizationLevel, InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

if TYPE_CHECKING:
    from pathlib import Path

    from faceprint.config import Settings

logger = logging.getLogger(__name__)


def build_providers(settings: Settings) -> list[str | tuple[str, dict[str, object]]]:
    """Return the execution provider list for the configured device."""
    device = settings.device
    if device == "cuda":
        return [
            (
                "CUDAExecutionProvider",
                {
                    "device_id": 0,
                    "gpu_mem_limit": settings.gpu_mem_limit,
                    "arena_extend_strategy": "kSameAsRequested",
                },
            ),
            "CPUExecutionProvider",
        ]
    if device == "openvino":
        return [
            ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
            "CPUExecutionProvider",
        ]
    return ["CPUExecutionProvider"]


def build_session_options(settings: Settings) -> SessionOptions:
    opts = SessionOptions()
    opts.intra_op_num_threads = settings.intra_op_threads
    opts.inter_op_num_threads = settings.inter_op_threads
    opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
    opts.enable_mem_pattern = True
    opts.enable_mem_reuse = True

    if settings.device == "openvino":
        # OpenVINO does its own graph optimization
        opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
    else:
        opts.graph_optimization_level = GraphOptimizationLevel.ORT_ENABLE_EXTENDED
    return opts


def create_session(model_path: Path, settings: Settings) -> InferenceSession:
    """Load an ONNX model into a new InferenceSession."""
    session = InferenceSession(
        str(model_path),
        sess_options=build_session_options(settings),
        providers=build_providers(settings),
    )
    logger.info("Loaded ONNX session for %s (device=%s)", model_path.name, settings.device)
    return session
