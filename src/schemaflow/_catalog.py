"""Ordered registry of the dependency paths used by one node."""

from collections.abc import Iterator

from ._path import normalize_token


class PathCatalog:
    """Insertion-ordered set of path tokens with stable integer indices.

    Every computed option of a node registers its paths in the same catalog,
    and compiled functions address their inputs by catalog index. An index
    never changes once assigned. After :meth:`freeze` no new path can be added.

    Example:
        >>> catalog = PathCatalog()
        >>> catalog.set("../a"), catalog.set("#/b"), catalog.set("/b")
        (0, 1, 1)
        >>> catalog.paths
        ('../a', '/b')

    """

    __slots__ = ("_frozen", "_index", "_paths")

    def __init__(self) -> None:
        self._paths: list[str] = []
        self._index: dict[str, int] = {}
        self._frozen = False

    def set(self, path: str) -> int:
        """Register ``path`` if absent and return its index."""
        path = normalize_token(path)
        index = self._index.get(path)
        if index is not None:
            return index
        if self._frozen:
            msg = f"Cannot register {path!r}: catalog is frozen"
            raise RuntimeError(msg)
        index = len(self._paths)
        self._paths.append(path)
        self._index[path] = index
        return index

    def find_index(self, path: str) -> int:
        """Return the index of ``path``, or -1 if it was never registered."""
        return self._index.get(normalize_token(path), -1)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._paths))

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_token(path) in self._index

    def __repr__(self) -> str:
        return f"PathCatalog({self._paths!r})"
