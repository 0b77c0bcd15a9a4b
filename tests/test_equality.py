"""Tests for deep_equal."""

import math
from typing import Any

import pytest

from schemaflow._equality import deep_equal


class TestDeepEqual:
    """Tests for structural equality."""

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            (1, 1),
            (1, 1.0),
            ("x", "x"),
            (None, None),
            ([1, [2, 3]], [1, [2, 3]]),
            ({"a": {"b": [1]}}, {"a": {"b": [1]}}),
            ((1, 2), (1, 2)),
            (math.nan, math.nan),
        ],
    )
    def test_equal(self, a: Any, b: Any) -> None:
        assert deep_equal(a, b)

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            (1, True),
            (0, False),
            (1, "1"),
            (None, 0),
            ([1, 2], [1, 2, 3]),
            ([1, 2], (1, 2)),
            ({"a": 1}, {"a": 1, "b": None}),
            ({"a": 1}, [("a", 1)]),
            ([1], 1),
        ],
    )
    def test_not_equal(self, a: Any, b: Any) -> None:
        assert not deep_equal(a, b)

    def test_float_tolerance_is_relative(self) -> None:
        assert deep_equal(20.0, 20.0 + 1e-9, float_tolerance=1e-9)
        assert not deep_equal(20.0, 20.1, float_tolerance=1e-9)
        assert not deep_equal(20.0, 20.0 + 1e-9)

    def test_tolerance_ignored_between_integers(self) -> None:
        assert not deep_equal(10**12, 10**12 + 1, float_tolerance=1e-9)

    def test_tolerance_applies_inside_containers(self) -> None:
        assert deep_equal({"v": [0.1 + 0.2]}, {"v": [0.3]}, float_tolerance=1e-9)

    def test_self_referencing_structures(self) -> None:
        a: list[Any] = [1]
        a.append(a)
        b: list[Any] = [1]
        b.append(b)
        assert deep_equal(a, b)
