"""Tests for the sector Merkle tree."""

import io

import pytest

from porepbench.prover.merkle import (
    MerkleTree,
    hash_pair,
    iter_leaf_digests,
    leaf_digest,
    leaf_size_for,
    root_from_path,
)


def _leaves(n: int) -> list:
    return [leaf_digest(f"leaf-{i}".encode()) for i in range(n)]


class TestMerkleTree:

    def test_single_leaf_root_is_leaf(self):
        leaves = _leaves(1)
        assert MerkleTree(leaves).root == leaves[0]

    def test_two_leaves(self):
        leaves = _leaves(2)
        assert MerkleTree(leaves).root == hash_pair(leaves[0], leaves[1])

    def test_odd_level_duplicates_last_node(self):
        leaves = _leaves(3)
        tree = MerkleTree(leaves)
        expected = hash_pair(hash_pair(leaves[0], leaves[1]), hash_pair(leaves[2], leaves[2]))
        assert tree.root == expected

    def test_empty_raises(self):
        with pytest.raises(ValueError, match="empty"):
            MerkleTree([])

    @pytest.mark.parametrize("n", [1, 2, 5, 64])
    def test_every_path_folds_to_root(self, n):
        tree = MerkleTree(_leaves(n))
        for i in range(n):
            assert root_from_path(tree.leaf(i), i, tree.get_path(i)) == tree.root

    def test_path_replayed_for_other_index_fails(self):
        tree = MerkleTree(_leaves(8))
        with pytest.raises(ValueError, match="direction"):
            root_from_path(tree.leaf(2), 3, tree.get_path(2))

    def test_index_out_of_range(self):
        with pytest.raises(IndexError):
            MerkleTree(_leaves(4)).get_path(4)


def test_leaf_size_bounds():
    assert leaf_size_for(2048) == 32
    assert leaf_size_for(8 << 20) == 8192


def test_leaf_digests_zero_fill_short_stream():
    digests = list(iter_leaf_digests(io.BytesIO(b"\x01" * 40), 32, 96))
    assert len(digests) == 3
    assert digests[1] == leaf_digest(b"\x01" * 8 + b"\x00" * 24)
    assert digests[2] == leaf_digest(b"\x00" * 32)
