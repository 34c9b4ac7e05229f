"""Tests for the face template value object."""

from __future__ import annotations

import numpy as np
import pytest
from fakes import DIM, make_template, unit_vector

from faceprint.ml.template import FACE_TEMPLATE_V16, KNOWN_VERSIONS, FaceTemplate, TemplateVersion, stack_data


class TestTemplateVersion:
    def test_v16_is_registered(self) -> None:
        assert KNOWN_VERSIONS["v16"] is FACE_TEMPLATE_V16
        assert FACE_TEMPLATE_V16.dimension == 128
        assert FACE_TEMPLATE_V16.default_threshold == pytest.approx(0.91)


class TestFaceTemplate:
    def test_data_has_version_length(self) -> None:
        template = make_template(1)
        assert template.data.shape == (DIM,)
        assert len(template) == DIM
        assert template.data.dtype == np.float32

    def test_reflexive_equality_and_hash(self) -> None:
        template = make_template(1)
        assert template == template
        assert hash(template) == hash(template)

    def test_equal_content_is_equal(self) -> None:
        a = FaceTemplate(FACE_TEMPLATE_V16, unit_vector(7))
        b = FaceTemplate(FACE_TEMPLATE_V16, unit_vector(7).tolist())
        assert a is not b
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_single_element_difference_is_unequal(self) -> None:
        data = unit_vector(3)
        changed = data.copy()
        changed[DIM - 1] += np.float32(1e-3)
        assert FaceTemplate(FACE_TEMPLATE_V16, data) != FaceTemplate(FACE_TEMPLATE_V16, changed)

    def test_different_version_is_unequal(self) -> None:
        other = TemplateVersion(name="v99", dimension=DIM, default_threshold=0.8)
        data = unit_vector(3)
        assert FaceTemplate(FACE_TEMPLATE_V16, data) != FaceTemplate(other, data)

    def test_negative_zero_hashes_like_zero(self) -> None:
        pos = np.zeros(DIM, dtype=np.float32)
        neg = np.full(DIM, -0.0, dtype=np.float32)
        a = FaceTemplate(FACE_TEMPLATE_V16, pos)
        b = FaceTemplate(FACE_TEMPLATE_V16, neg)
        assert a == b
        assert hash(a) == hash(b)

    def test_not_equal_to_other_types(self) -> None:
        template = make_template(1)
        assert template != template.to_list()

    def test_wrong_length_rejected(self) -> None:
        with pytest.raises(ValueError, match="requires 128 values"):
            FaceTemplate(FACE_TEMPLATE_V16, np.zeros(127, dtype=np.float32))

    def test_two_dimensional_rejected(self) -> None:
        with pytest.raises(ValueError, match="one-dimensional"):
            FaceTemplate(FACE_TEMPLATE_V16, np.zeros((2, 64), dtype=np.float32))

    @pytest.mark.parametrize("bad", [np.nan, np.inf, -np.inf])
    def test_non_finite_rejected(self, bad: float) -> None:
        data = unit_vector(1)
        data[5] = bad
        with pytest.raises(ValueError, match="finite"):
            FaceTemplate(FACE_TEMPLATE_V16, data)

    def test_data_is_read_only(self) -> None:
        template = make_template(1)
        with pytest.raises(ValueError):
            template.data[0] = 1.0

    def test_source_array_is_copied(self) -> None:
        data = unit_vector(1)
        template = FaceTemplate(FACE_TEMPLATE_V16, data)
        before = hash(template)
        data[0] = 42.0
        assert hash(template) == before
        assert template.data[0] != np.float32(42.0)

    def test_repr_names_version(self) -> None:
        assert "v16" in repr(make_template(1))


class TestStackData:
    def test_stacks_rows_in_order(self) -> None:
        templates = [make_template(i) for i in range(3)]
        matrix = stack_data(templates)
        assert matrix.shape == (3, DIM)
        np.testing.assert_array_equal(matrix[2], templates[2].data)

    def test_empty(self) -> None:
        assert stack_data([]).shape == (0, 0)
