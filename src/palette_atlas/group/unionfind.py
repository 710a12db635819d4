"""Disjoint sets used to link density-connected core points."""

from __future__ import annotations

from typing import Dict, Generic, Hashable, Iterable, TypeVar

T = TypeVar("T", bound=Hashable)


class UnionFind(Generic[T]):
    """Union by size with path halving."""

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._parent: Dict[T, T] = {}
        self._size: Dict[T, int] = {}
        self.add_all(items)

    def __len__(self) -> int:
        return len(self._parent)

    def add_all(self, items: Iterable[T]) -> None:
        """Register every item in *items* as its own singleton set."""
        for item in items:
            if item not in self._parent:
                self._parent[item] = item
                self._size[item] = 1

    def find(self, item: T) -> T:
        """Return the root of the set holding *item*, adding it if unseen."""
        parent = self._parent
        if item not in parent:
            self.add_all((item,))
            return item
        while parent[item] != item:
            parent[item] = parent[parent[item]]
            item = parent[item]
        return item

    def union(self, a: T, b: T) -> T:
        """Merge the sets of *a* and *b* and return the surviving root."""
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return root_a
        if self._size[root_a] < self._size[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        self._size[root_a] += self._size.pop(root_b)
        return root_a
