"""Tests for the feature extractor handle."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import numpy as np
import pytest
from fakes import DIM, FakeExtractor, blank_image, unit_vector

from faceprint.config import Settings
from faceprint.errors import ClosedEngineError, ExtractionError, InitializationError, InvalidRegionError
from faceprint.ml.handle import ExtractorHandle
from faceprint.ml.regions import Rect


class TestExtractEmbedding:
    def test_returns_extractor_vector(self) -> None:
        expected = unit_vector(99)
        handle = ExtractorHandle(FakeExtractor(embeddings={10: expected}))
        vector = handle.extract_embedding(blank_image(), Rect(10, 10, 100, 100))
        np.testing.assert_array_equal(vector, expected)

    def test_passes_clamped_rect(self) -> None:
        extractor = FakeExtractor()
        handle = ExtractorHandle(extractor)
        handle.extract_embedding(blank_image(640, 480), Rect(-20, -10, 700, 500))
        assert extractor.calls == [Rect(0, 0, 639, 479)]

    def test_out_of_bounds_raises_invalid_region(self) -> None:
        extractor = FakeExtractor()
        handle = ExtractorHandle(extractor)
        with pytest.raises(InvalidRegionError):
            handle.extract_embedding(blank_image(640, 480), Rect(650, 10, 700, 100))
        assert extractor.calls == []

    def test_accepts_rgba(self) -> None:
        handle = ExtractorHandle(FakeExtractor())
        vector = handle.extract_embedding(blank_image(channels=4), Rect(10, 10, 100, 100))
        assert vector.shape == (DIM,)

    @pytest.mark.parametrize(
        "image",
        [
            np.zeros((480, 640), dtype=np.uint8),
            np.zeros((480, 640, 2), dtype=np.uint8),
            np.zeros((480, 640, 3), dtype=np.float32),
        ],
    )
    def test_rejects_unsupported_images(self, image: np.ndarray) -> None:
        handle = ExtractorHandle(FakeExtractor())
        with pytest.raises(ExtractionError, match="Image must be"):
            handle.extract_embedding(image, Rect(10, 10, 100, 100))

    def test_native_failure_becomes_extraction_error(self) -> None:
        handle = ExtractorHandle(FakeExtractor(failures={10: RuntimeError("boom")}))
        with pytest.raises(ExtractionError, match="Embedding extraction failed") as excinfo:
            handle.extract_embedding(blank_image(), Rect(10, 10, 100, 100))
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_extraction_errors_pass_through(self) -> None:
        raised = ExtractionError("Predictor did not return 5 points")
        handle = ExtractorHandle(FakeExtractor(failures={10: raised}))
        with pytest.raises(ExtractionError) as excinfo:
            handle.extract_embedding(blank_image(), Rect(10, 10, 100, 100))
        assert excinfo.value is raised

    def test_wrong_length_is_extraction_error(self) -> None:
        handle = ExtractorHandle(FakeExtractor(embeddings={10: np.ones(64, dtype=np.float32)}))
        with pytest.raises(ExtractionError, match="returned 64 values"):
            handle.extract_embedding(blank_image(), Rect(10, 10, 100, 100))


class TestAlignFace:
    def test_uses_configured_size_and_padding(self) -> None:
        handle = ExtractorHandle(FakeExtractor(), crop_size=112, padding=0.3)
        crop = handle.align_face(blank_image(), Rect(10, 10, 100, 100))
        assert crop.shape == (112, 112, 3)
        assert crop.dtype == np.float32
        assert crop[0, 0, 0] == pytest.approx(0.3)

    def test_out_of_bounds_raises_invalid_region(self) -> None:
        handle = ExtractorHandle(FakeExtractor())
        with pytest.raises(InvalidRegionError):
            handle.align_face(blank_image(640, 480), Rect(-100, -100, -10, -10))


class TestSerialization:
    def _run_concurrently(self, extractor: FakeExtractor) -> None:
        handle = ExtractorHandle(extractor)
        image = blank_image()
        with ThreadPoolExecutor(max_workers=4) as executor:
            futures = [executor.submit(handle.extract_embedding, image, Rect(i, 10, 100, 100)) for i in range(8)]
            for future in futures:
                future.result()

    def test_not_thread_safe_extractor_is_serialized(self) -> None:
        extractor = FakeExtractor(thread_safe=False)
        self._run_concurrently(extractor)
        assert len(extractor.calls) == 8
        assert extractor.max_active == 1

    def test_thread_safe_extractor_calls_complete(self) -> None:
        extractor = FakeExtractor(thread_safe=True)
        self._run_concurrently(extractor)
        assert len(extractor.calls) == 8


class TestLifecycle:
    def test_close_is_idempotent(self) -> None:
        extractor = FakeExtractor()
        handle = ExtractorHandle(extractor)
        assert not handle.closed
        handle.close()
        handle.close()
        assert handle.closed
        assert extractor.close_count == 1

    def test_use_after_close_raises(self) -> None:
        extractor = FakeExtractor()
        handle = ExtractorHandle(extractor)
        handle.close()
        with pytest.raises(ClosedEngineError):
            handle.extract_embedding(blank_image(), Rect(10, 10, 100, 100))
        with pytest.raises(ClosedEngineError):
            handle.align_face(blank_image(), Rect(10, 10, 100, 100))
        assert extractor.calls == []

    def test_context_manager_releases(self) -> None:
        extractor = FakeExtractor()
        with ExtractorHandle(extractor) as handle:
            handle.extract_embedding(blank_image(), Rect(10, 10, 100, 100))
        assert extractor.close_count == 1

    def test_close_waits_for_in_flight_call(self) -> None:
        gate = threading.Event()
        extractor = FakeExtractor(gate=gate)
        handle = ExtractorHandle(extractor)
        with ThreadPoolExecutor(max_workers=2) as executor:
            call = executor.submit(handle.extract_embedding, blank_image(), Rect(10, 10, 100, 100))
            while not extractor.calls:
                time.sleep(0.01)
            closing = executor.submit(handle.close)
            time.sleep(0.05)
            assert extractor.close_count == 0
            gate.set()
            assert call.result(timeout=5).shape == (DIM,)
            closing.result(timeout=5)
        assert extractor.close_count == 1


class TestOpen:
    def test_missing_landmark_model(self, tmp_path: Path) -> None:
        embedding = tmp_path / "model.onnx"
        embedding.write_bytes(b"onnx")
        with pytest.raises(InitializationError, match="Landmark model not found"):
            ExtractorHandle.open(tmp_path / "missing.dat", embedding, Settings())

    def test_missing_embedding_model(self, tmp_path: Path) -> None:
        landmarks = tmp_path / "landmarks.dat"
        landmarks.write_bytes(b"dat")
        with pytest.raises(InitializationError, match="Embedding model not found"):
            ExtractorHandle.open(landmarks, tmp_path / "missing.onnx", Settings())

    def test_directory_is_not_a_model(self, tmp_path: Path) -> None:
        with pytest.raises(InitializationError):
            ExtractorHandle.open(tmp_path, tmp_path, Settings())
