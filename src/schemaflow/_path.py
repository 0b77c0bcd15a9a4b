"""Path tokens embedded in computed expressions.

Five token forms are recognized:

- absolute: ``/a/b``
- root fragment: ``#/a/b``, ``#/`` and the parenthesized root ``(/)``
- parent relative: ``../a``, ``../../a/b``
- current relative: ``./a``, ``./``
- context: a standalone ``@``

Segments follow RFC 6901, so ``~1`` decodes to ``/`` and ``~0`` to ``~``.
"""

import re
from dataclasses import dataclass
from typing import Final

CONTEXT: Final = "@"
ROOT: Final = "/"

# Segment characters exclude the Python punctuation that can directly follow
# an operand, so `./a==1` or `(./a)*2` still read as expressions.
_SEGMENT = r"""(?:[^\s()\[\]{}/~,;:'"=<>!+*%&|^]|~[01])+"""
_MULTI_LEVEL = rf"{_SEGMENT}(?:/{_SEGMENT})*"
_OPTIONAL = rf"(?:{_MULTI_LEVEL})?(?!/)"

PATH_TOKEN_PATTERN: Final = re.compile(
    # not inside an identifier, a string literal or another token
    r"""(?<![\w#./@)\]'"])"""
    r"(?:"
    rf"(?:\.\./)+{_OPTIONAL}"
    rf"|[#.]/{_OPTIONAL}"
    rf"|/{_MULTI_LEVEL}"
    r"|\(/\)"
    r"|(?:(?<=[\s(\[,])|^)@(?![\w/]|\.[/.])"
    r")",
)


def escape_segment(segment: str) -> str:
    return segment.replace("~", "~0").replace("/", "~1")


def unescape_segment(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def split_pointer(pointer: str) -> tuple[str, ...]:
    """Split an absolute pointer into unescaped segments.

    >>> split_pointer("/a/b~1c")
    ('a', 'b/c')
    >>> split_pointer("/")
    ()

    """
    return tuple(unescape_segment(part) for part in pointer.split("/") if part)


def join_pointer(parts: tuple[str, ...] | list[str]) -> str:
    """Build an absolute pointer from unescaped segments.

    >>> join_pointer(("a", "b/c"))
    '/a/b~1c'
    >>> join_pointer(())
    '/'

    """
    if not parts:
        return ROOT
    return "".join(f"/{escape_segment(part)}" for part in parts)


def normalize_token(token: str) -> str:
    """Rewrite root-fragment spellings to their absolute form.

    >>> normalize_token("#/a/b")
    '/a/b'
    >>> normalize_token("(/)")
    '/'
    >>> normalize_token("../a")
    '../a'

    """
    token = token.strip()
    if token == "(/)":
        return ROOT
    if token.startswith("#/"):
        return token[1:]
    return token


def find_tokens(expression: str) -> list[str]:
    """Return every path token in ``expression`` in order of appearance.

    Tokens are normalized but not de-duplicated.
    """
    return [normalize_token(match.group(0)) for match in PATH_TOKEN_PATTERN.finditer(expression)]


@dataclass(slots=True, frozen=True)
class AbsolutePointer:
    parts: tuple[str, ...]

    def __str__(self) -> str:
        return join_pointer(self.parts)


@dataclass(slots=True, frozen=True)
class RelativePointer:
    """Pointer resolved against the evaluating node.

    ``up`` counts the leading ``../`` prefixes; zero means ``./``.
    """

    up: int
    parts: tuple[str, ...]

    def __str__(self) -> str:
        prefix = "../" * self.up if self.up else "./"
        return prefix + "/".join(escape_segment(part) for part in self.parts)


@dataclass(slots=True, frozen=True)
class ContextPointer:
    def __str__(self) -> str:
        return CONTEXT


Pointer = AbsolutePointer | RelativePointer | ContextPointer


def parse_pointer(token: str) -> Pointer:
    """Parse a path token into a pointer.

    Raises:
        ValueError: If the token is not one of the recognized forms.

    """
    token = normalize_token(token)
    if token == CONTEXT:
        return ContextPointer()
    if token.startswith("/"):
        return AbsolutePointer(split_pointer(token))

    up = 0
    rest = token
    while rest.startswith("../"):
        up += 1
        rest = rest[3:]
    if up == 0:
        if not rest.startswith("./"):
            msg = f"Not a path token: {token!r}"
            raise ValueError(msg)
        rest = rest[2:]
    return RelativePointer(up=up, parts=split_pointer(rest))


def resolve_pointer(node_path: str, token: str) -> str | None:
    """Resolve ``token`` against the node at ``node_path``.

    Returns the absolute pointer of the referenced node, or ``None`` for the
    external context. Parent references never climb above the root.

    >>> resolve_pointer("/a/b", "../c")
    '/a/c'
    >>> resolve_pointer("/a", "./x/y")
    '/a/x/y'
    >>> resolve_pointer("/a/b", "#/z")
    '/z'

    """
    match parse_pointer(token):
        case ContextPointer():
            return None
        case AbsolutePointer(parts):
            return join_pointer(parts)
        case RelativePointer(up, parts):
            base = split_pointer(node_path)
            base = base[: max(len(base) - up, 0)]
            return join_pointer(base + parts)
        case pointer:
            msg = f"Unknown pointer type: {type(pointer)}"
            raise TypeError(msg)


def is_related(a: str, b: str) -> bool:
    """Check whether two absolute pointers overlap.

    Two pointers overlap when they are equal or one addresses a node below
    the other, so a write to either may change the value read through the
    other.

    >>> is_related("/a", "/a/b")
    True
    >>> is_related("/a/b", "/a/c")
    False

    """
    if a == b or ROOT in (a, b):
        return True
    return a.startswith(b + "/") or b.startswith(a + "/")
