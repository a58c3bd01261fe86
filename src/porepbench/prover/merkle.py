"""
merkle.py - Binary SHA-256 Merkle tree over sector leaves
==========================================================
Leaf nodes: SHA-256 of a fixed-size slice of the sector.
Internal nodes: SHA-256( left_child || right_child ).
Odd levels duplicate their last node.
"""

import hashlib
import logging
from pathlib import Path
from typing import BinaryIO, Iterable, List, Tuple, Union

logger = logging.getLogger(__name__)

# (sibling digest, sibling_is_right)
PathElement = Tuple[bytes, bool]


def hash_pair(left: bytes, right: bytes) -> bytes:
    return hashlib.sha256(left + right).digest()


def leaf_digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


class MerkleTree:
    """
    A binary Merkle tree built from leaf digests.

    Attributes:
        levels: All levels of the tree, from leaves (index 0) to root.
    """

    def __init__(self, leaves: Iterable[bytes]):
        """
        Build the tree from raw 32-byte leaf digests.

        Raises:
            ValueError: If there are no leaves.
        """
        first = list(leaves)
        if not first:
            raise ValueError("Cannot build Merkle tree from empty leaf list")

        self.levels: List[List[bytes]] = [first]
        current = first
        while len(current) > 1:
            nxt = []
            for i in range(0, len(current), 2):
                left = current[i]
                right = current[i + 1] if i + 1 < len(current) else left
                nxt.append(hash_pair(left, right))
            current = nxt
            self.levels.append(current)

    @property
    def root(self) -> bytes:
        return self.levels[-1][0]

    @property
    def leaf_count(self) -> int:
        return len(self.levels[0])

    def leaf(self, index: int) -> bytes:
        return self.levels[0][index]

    def get_path(self, index: int) -> List[PathElement]:
        """
        Authentication path for the leaf at `index`, bottom-up.

        Raises:
            IndexError: If index is out of range.
        """
        if index < 0 or index >= self.leaf_count:
            raise IndexError(f"Leaf index {index} out of range [0, {self.leaf_count})")

        path: List[PathElement] = []
        current = index
        for level in self.levels[:-1]:
            if current % 2 == 0:
                sibling = level[current + 1] if current + 1 < len(level) else level[current]
                path.append((sibling, True))
            else:
                path.append((level[current - 1], False))
            current //= 2
        return path


def root_from_path(leaf: bytes, index: int, path: List[PathElement]) -> bytes:
    """Fold an authentication path back up to the root it commits to.

    The sibling side must agree with the leaf index, otherwise a path for one
    leaf could be replayed for another.
    """
    node = leaf
    current = index
    for sibling, sibling_is_right in path:
        if sibling_is_right != (current % 2 == 0):
            raise ValueError(f"path direction does not match leaf index {index}")
        node = hash_pair(node, sibling) if sibling_is_right else hash_pair(sibling, node)
        current //= 2
    if current != 0:
        raise ValueError(f"path too short for leaf index {index}")
    return node


def leaf_size_for(sector_size: int) -> int:
    """At most 1024 leaves per sector, never smaller than one 32-byte node."""
    return max(32, sector_size // 1024)


def iter_leaf_digests(stream: BinaryIO, leaf_size: int, total_size: int) -> Iterable[bytes]:
    """Digest consecutive leaf_size slices of a stream, zero-filling past its end."""
    remaining = total_size
    while remaining > 0:
        want = min(leaf_size, remaining)
        chunk = stream.read(want)
        if len(chunk) < want:
            chunk = chunk + b"\x00" * (want - len(chunk))
        yield leaf_digest(chunk)
        remaining -= want


def tree_from_file(path: Union[str, Path], sector_size: int) -> MerkleTree:
    """Build the tree of a sector file padded (with zeros) to sector_size."""
    leaf_size = leaf_size_for(sector_size)
    with open(path, "rb") as f:
        tree = MerkleTree(iter_leaf_digests(f, leaf_size, sector_size))
    logger.debug("Built Merkle tree for %s: %d leaves, root=%s...", path, tree.leaf_count, tree.root.hex()[:16])
    return tree
