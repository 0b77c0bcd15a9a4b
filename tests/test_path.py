"""Tests for path token recognition and resolution in schemaflow._path."""

import pytest

from schemaflow._path import (
    AbsolutePointer,
    ContextPointer,
    RelativePointer,
    find_tokens,
    is_related,
    join_pointer,
    normalize_token,
    parse_pointer,
    resolve_pointer,
    split_pointer,
)


class TestFindTokens:
    """Tests for recognizing the five token forms."""

    @pytest.mark.parametrize(
        ("expression", "expected"),
        [
            ("../property", ["../property"]),
            ("../../nested/path", ["../../nested/path"]),
            ("../", ["../"]),
            ("#/config/value", ["/config/value"]),
            ("#/", ["/"]),
            ("./current", ["./current"]),
            ("./", ["./"]),
            ("/absolute/path", ["/absolute/path"]),
            ("(/)", ["/"]),
            ("@", ["@"]),
            ("../a and #/b", ["../a", "/b"]),
            ("#/prop-with-dash", ["/prop-with-dash"]),
            ("/한글/경로", ["/한글/경로"]),
            ("/a~1b/c~0d", ["/a~1b/c~0d"]),
        ],
    )
    def test_recognized(self, expression: str, expected: list[str]) -> None:
        assert find_tokens(expression) == expected

    @pytest.mark.parametrize(
        "expression",
        [
            "/",
            "a / b",
            "a // b",
            "2/3",
            "@property",
            "@/path",
            "@./path",
            "@../path",
            "variable../path",
            "name./path",
            "'@'",
            '"./quoted"',
            "(x)/2",
            "items[0]/2",
        ],
    )
    def test_not_recognized(self, expression: str) -> None:
        assert find_tokens(expression) == []

    def test_invalid_escape_ends_segment(self) -> None:
        assert find_tokens("/a~2") == ["/a"]

    @pytest.mark.parametrize(
        ("expression", "expected"),
        [
            ("../count > 10", ["../count"]),
            ("./a==1", ["./a"]),
            ("(./a)*2", ["./a"]),
            ("../a+../b", ["../a", "../b"]),
            ("len(../items) if ../items else 0", ["../items", "../items"]),
            ("{'k': ../v}", ["../v"]),
            ("[../a, ../b]", ["../a", "../b"]),
        ],
    )
    def test_stops_at_python_punctuation(self, expression: str, expected: list[str]) -> None:
        assert find_tokens(expression) == expected

    @pytest.mark.parametrize(
        ("expression", "expected"),
        [
            ("@.locale", ["@"]),
            ("(@)", ["@"]),
            ("@ == 'x'", ["@"]),
            ("x and @", ["@"]),
            ("[@, ../a]", ["@", "../a"]),
        ],
    )
    def test_context(self, expression: str, expected: list[str]) -> None:
        assert find_tokens(expression) == expected


class TestNormalizeToken:
    """Tests for normalize_token."""

    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("#/a/b", "/a/b"),
            ("#/", "/"),
            ("(/)", "/"),
            ("/a", "/a"),
            ("../a", "../a"),
            ("./a", "./a"),
            ("@", "@"),
            ("  ../a  ", "../a"),
        ],
    )
    def test_normalize(self, token: str, expected: str) -> None:
        assert normalize_token(token) == expected


class TestPointers:
    """Tests for parsing and resolving pointers."""

    def test_split_and_join_unescape(self) -> None:
        assert split_pointer("/a~1b/c~0d") == ("a/b", "c~d")
        assert join_pointer(("a/b", "c~d")) == "/a~1b/c~0d"

    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("@", ContextPointer()),
            ("/a/b", AbsolutePointer(("a", "b"))),
            ("#/a", AbsolutePointer(("a",))),
            ("(/)", AbsolutePointer(())),
            ("./x", RelativePointer(0, ("x",))),
            ("./", RelativePointer(0, ())),
            ("../../x/y", RelativePointer(2, ("x", "y"))),
        ],
    )
    def test_parse_pointer(self, token: str, expected: object) -> None:
        assert parse_pointer(token) == expected

    def test_parse_pointer_rejects_bare_name(self) -> None:
        with pytest.raises(ValueError, match="Not a path token"):
            parse_pointer("name")

    def test_pointer_str(self) -> None:
        assert str(RelativePointer(2, ("a", "b/c"))) == "../../a/b~1c"
        assert str(RelativePointer(0, ("a",))) == "./a"
        assert str(AbsolutePointer(())) == "/"
        assert str(ContextPointer()) == "@"

    @pytest.mark.parametrize(
        ("node_path", "token", "expected"),
        [
            ("/a/b", "../c", "/a/c"),
            ("/a/b", "../../c", "/c"),
            ("/a/b", "../../../../c", "/c"),
            ("/a", "./x/y", "/a/x/y"),
            ("/a", "./", "/a"),
            ("/a/b", "/z", "/z"),
            ("/a/b", "#/z", "/z"),
            ("/a/b", "(/)", "/"),
            ("/a/b", "@", None),
            ("/", "./kind", "/kind"),
        ],
    )
    def test_resolve_pointer(self, node_path: str, token: str, expected: str | None) -> None:
        assert resolve_pointer(node_path, token) == expected

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("/a", "/a", True),
            ("/a", "/a/b", True),
            ("/a/b", "/a", True),
            ("/a", "/ab", False),
            ("/a/b", "/a/c", False),
            ("/", "/anything", True),
        ],
    )
    def test_is_related(self, a: str, b: str, *, expected: bool) -> None:
        assert is_related(a, b) is expected
