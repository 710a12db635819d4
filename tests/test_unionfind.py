"""
Unit tests for the disjoint-set structure.
"""
from palette_atlas.group.unionfind import UnionFind


class TestUnionFind:
    def test_singletons(self):
        uf = UnionFind([1, 2, 3])
        assert len(uf) == 3
        assert [uf.find(item) for item in (1, 2, 3)] == [1, 2, 3]

    def test_union_is_transitive(self):
        uf = UnionFind(range(5))
        uf.union(0, 1)
        uf.union(3, 4)
        uf.union(1, 4)
        assert len({uf.find(item) for item in (0, 1, 3, 4)}) == 1
        assert uf.find(2) == 2

    def test_union_returns_root(self):
        uf = UnionFind()
        root = uf.union("a", "b")
        assert root == uf.find("a") == uf.find("b")
        assert uf.union("a", "b") == root

    def test_find_registers_unseen_items(self):
        uf = UnionFind()
        assert uf.find(7) == 7
        assert len(uf) == 1
