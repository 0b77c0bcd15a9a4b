"""Structural equality used to suppress no-op updates."""

import math
from collections.abc import Mapping
from typing import Any


def deep_equal(a: Any, b: Any, *, float_tolerance: float = 0.0) -> bool:
    """Compare two values structurally.

    Mappings, lists and tuples are compared element by element, following
    self-references without recursing forever. Booleans only equal
    booleans. Numbers involving a float are equal when they agree within
    ``float_tolerance`` (relative); two NaNs are equal.

    >>> deep_equal({"a": [1, 2.0]}, {"a": [1, 2]})
    True
    >>> deep_equal(1, True)
    False
    >>> deep_equal(10.0, 10.0 + 1e-12, float_tolerance=1e-9)
    True

    """
    return _equal(a, b, float_tolerance, set())


def _equal(a: Any, b: Any, tolerance: float, seen: set[tuple[int, int]]) -> bool:  # noqa: PLR0911
    if a is b:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return False
    if isinstance(a, int | float) and isinstance(b, int | float):
        return _numbers_equal(a, b, tolerance)

    if isinstance(a, Mapping) and isinstance(b, Mapping):
        key = (id(a), id(b))
        if key in seen:
            return True
        seen.add(key)
        if a.keys() != b.keys():
            return False
        return all(_equal(a[k], b[k], tolerance, seen) for k in a)

    if (isinstance(a, list) and isinstance(b, list)) or (isinstance(a, tuple) and isinstance(b, tuple)):
        key = (id(a), id(b))
        if key in seen:
            return True
        seen.add(key)
        if len(a) != len(b):
            return False
        return all(_equal(x, y, tolerance, seen) for x, y in zip(a, b, strict=True))

    if isinstance(a, Mapping | list | tuple) or isinstance(b, Mapping | list | tuple):
        return False
    return bool(a == b)


def _numbers_equal(a: float, b: float, tolerance: float) -> bool:
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    if tolerance and (isinstance(a, float) or isinstance(b, float)):
        return math.isclose(a, b, rel_tol=tolerance)
    return a == b
