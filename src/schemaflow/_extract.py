"""Replace path tokens in an expression with indexed dependency lookups."""

import logging

from ._catalog import PathCatalog
from ._path import PATH_TOKEN_PATTERN, find_tokens

logger = logging.getLogger(__name__)

DEPENDENCIES = "dependencies"


def extract_paths(expression: str) -> list[str]:
    """Return the distinct path tokens of ``expression`` in first-seen order.

    >>> extract_paths("../a > 1 and #/b == /b")
    ['../a', '/b']

    """
    return list(dict.fromkeys(find_tokens(expression)))


def substitute_paths(expression: str, catalog: PathCatalog) -> str:
    """Rewrite every path token as ``dependencies[<index>]``.

    Each token is registered in ``catalog`` as it is met, so indices follow
    first appearance. The result is stripped of surrounding whitespace and
    of one trailing semicolon; an empty result means the expression defines
    nothing.

    >>> catalog = PathCatalog()
    >>> substitute_paths("../a + ../a * /b;", catalog)
    'dependencies[0] + dependencies[0] * dependencies[1]'

    """
    substituted = PATH_TOKEN_PATTERN.sub(
        lambda match: f"{DEPENDENCIES}[{catalog.set(match.group(0))}]",
        expression,
    )
    substituted = substituted.strip()
    if substituted.endswith(";"):
        substituted = substituted[:-1].rstrip()
    logger.debug("Substituted %r -> %r", expression, substituted)
    return substituted
