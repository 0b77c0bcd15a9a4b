"""Tests for PathCatalog and path substitution."""

import pytest

from schemaflow._catalog import PathCatalog
from schemaflow._extract import extract_paths, substitute_paths


class TestPathCatalog:
    """Tests for PathCatalog registration."""

    @pytest.mark.parametrize("token", ["/a/b", "#/a/b", "../a", "./a", "@", "(/)"])
    def test_same_token_twice_yields_same_index(self, token: str) -> None:
        catalog = PathCatalog()
        catalog.set("/other")
        first = catalog.set(token)
        second = catalog.set(token)
        assert first == second == 1
        assert len(catalog) == 2

    def test_fragment_and_absolute_share_index(self) -> None:
        catalog = PathCatalog()
        assert catalog.set("#/a") == catalog.set("/a") == 0
        assert catalog.set("(/)") == catalog.set("#/") == 1
        assert catalog.paths == ("/a", "/")

    def test_find_index(self) -> None:
        catalog = PathCatalog()
        catalog.set("../x")
        catalog.set("../y")
        assert catalog.find_index("../y") == 1
        assert catalog.find_index("../z") == -1

    def test_indices_are_stable_in_insertion_order(self) -> None:
        catalog = PathCatalog()
        indices = [catalog.set(path) for path in ["../c", "../a", "../b", "../a"]]
        assert indices == [0, 1, 2, 1]
        assert list(catalog) == ["../c", "../a", "../b"]

    def test_frozen_catalog_rejects_new_paths(self) -> None:
        catalog = PathCatalog()
        catalog.set("../a")
        catalog.freeze()
        assert catalog.frozen
        assert catalog.set("../a") == 0
        with pytest.raises(RuntimeError, match="frozen"):
            catalog.set("../b")

    def test_contains(self) -> None:
        catalog = PathCatalog()
        catalog.set("/a")
        assert "#/a" in catalog
        assert "/b" not in catalog
        assert 1 not in catalog


class TestSubstitutePaths:
    """Tests for substitute_paths."""

    def test_replaces_tokens_in_first_seen_order(self) -> None:
        catalog = PathCatalog()
        result = substitute_paths("../b > 1 and ../a == ../b", catalog)
        assert result == "dependencies[0] > 1 and dependencies[1] == dependencies[0]"
        assert catalog.paths == ("../b", "../a")

    def test_reuses_catalog_shared_between_options(self) -> None:
        catalog = PathCatalog()
        substitute_paths("../a", catalog)
        assert substitute_paths("../b or ../a", catalog) == "dependencies[1] or dependencies[0]"

    def test_context_and_root(self) -> None:
        catalog = PathCatalog()
        result = substitute_paths("@.locale == 'ko' and (/) is not None", catalog)
        assert result == "dependencies[0].locale == 'ko' and dependencies[1] is not None"
        assert catalog.paths == ("@", "/")

    def test_division_is_left_alone(self) -> None:
        catalog = PathCatalog()
        assert substitute_paths("../total / 2", catalog) == "dependencies[0] / 2"
        assert catalog.paths == ("../total",)

    @pytest.mark.parametrize(
        ("expression", "expected"),
        [
            ("  ../a  ", "dependencies[0]"),
            ("../a;", "dependencies[0]"),
            ("../a ; ", "dependencies[0]"),
            ("", ""),
            ("   ", ""),
            (";", ""),
        ],
    )
    def test_trims_whitespace_and_trailing_semicolon(self, expression: str, expected: str) -> None:
        assert substitute_paths(expression, PathCatalog()) == expected

    def test_block_text_is_substituted(self) -> None:
        catalog = PathCatalog()
        result = substitute_paths("{\n    if ../a:\n        return ./b\n}", catalog)
        assert result == "{\n    if dependencies[0]:\n        return dependencies[1]\n}"


class TestExtractPaths:
    """Tests for extract_paths."""

    def test_distinct_normalized_paths(self) -> None:
        assert extract_paths("#/a + /a + ../b + ../b") == ["/a", "../b"]

    def test_no_paths(self) -> None:
        assert extract_paths("1 + 2") == []
