"""
sealing.py - Reference sealing, proving and seal verification
==============================================================
A hash-based stand-in for the PoRep proving backend:

- unsealed commitment (commd): Merkle root of the zero-padded staged sector
- replica id: SHA-256 over miner, sector, statement id, nonce and commd
- sealing: XOR of the padded sector with a SHA-256 counter keystream keyed
  by the replica id
- sealed commitment (commr): Merkle root of the sealed replica
- proof: Merkle openings of CHALLENGE_COUNT leaves picked by the interactive
  randomness, plus a tag binding the whole statement/challenge transcript
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import List, Union

from pydantic import BaseModel, ConfigDict

from porepbench._internal.canonical_json import canonical_bytes
from porepbench.errors import BackendError
from porepbench.kernel.proof_types import ProofType
from porepbench.kernel.protocol import (
    PIECE_CID_PREFIX,
    SEALED_CID_PREFIX,
    UNSEALED_CID_PREFIX,
    Challenge,
    Proof,
    SealVerifyInfo,
    Statement,
    cid_digest,
    make_cid,
)
from .merkle import MerkleTree, iter_leaf_digests, leaf_size_for, root_from_path, tree_from_file

logger = logging.getLogger(__name__)

CHALLENGE_COUNT = 8
PROOF_FORMAT_VERSION = 1

_BLOCK = 32
_SEAL_CHUNK = 1 << 20


class ProofLeaf(BaseModel):
    index: int
    leaf: str  # hex digest
    path: List[List[Union[str, bool]]]  # [sibling hex, sibling_is_right]

    model_config = ConfigDict(extra="forbid")


class ProofPayload(BaseModel):
    """Decoded content of Proof.content."""
    version: int = PROOF_FORMAT_VERSION
    leaves: List[ProofLeaf]
    tag: str

    model_config = ConfigDict(extra="forbid")


def _sha256_file(path: Path) -> bytes:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_SEAL_CHUNK), b""):
            h.update(chunk)
    return h.digest()


def piece_cid(path: Union[str, Path]) -> str:
    return make_cid(PIECE_CID_PREFIX, _sha256_file(Path(path)))


def unsealed_cid(staged_path: Union[str, Path], sector_size: int) -> str:
    return make_cid(UNSEALED_CID_PREFIX, tree_from_file(staged_path, sector_size).root)


def replica_id(miner_id: int, sector_num: int, statement_id: bytes, nonce: int, comm_d: str) -> bytes:
    h = hashlib.sha256()
    h.update(miner_id.to_bytes(8, "big"))
    h.update(sector_num.to_bytes(8, "big"))
    h.update(statement_id)
    h.update(nonce.to_bytes(8, "big"))
    h.update(cid_digest(comm_d))
    return h.digest()


def _keystream(key: bytes, offset: int, length: int) -> bytes:
    # offset is always block aligned: chunks are multiples of _BLOCK
    first = offset // _BLOCK
    blocks = (length + _BLOCK - 1) // _BLOCK
    out = b"".join(
        hashlib.sha256(key + (first + i).to_bytes(8, "big")).digest() for i in range(blocks)
    )
    return out[:length]


def _xor(data: bytes, stream: bytes) -> bytes:
    n = len(data)
    return (int.from_bytes(data, "big") ^ int.from_bytes(stream, "big")).to_bytes(n, "big")


def seal_sector(staged_path: Union[str, Path], sealed_path: Union[str, Path], sector_size: int, rep_id: bytes) -> str:
    """Encode the padded staged sector into its sealed replica and return commr."""
    offset = 0
    with open(staged_path, "rb") as src, open(sealed_path, "wb") as dst:
        while offset < sector_size:
            want = min(_SEAL_CHUNK, sector_size - offset)
            chunk = src.read(want)
            if len(chunk) < want:
                chunk = chunk + b"\x00" * (want - len(chunk))
            dst.write(_xor(chunk, _keystream(rep_id, offset, want)))
            offset += want
    with open(sealed_path, "rb") as f:
        root = MerkleTree(iter_leaf_digests(f, leaf_size_for(sector_size), sector_size)).root
    logger.info("Sealed %s -> %s (commr=%s...)", staged_path, sealed_path, root.hex()[:16])
    return make_cid(SEALED_CID_PREFIX, root)


def challenge_indices(statement_id: bytes, interactive_randomness: bytes, leaf_count: int) -> List[int]:
    """Leaf indices a challenge selects; a pure function of the randomness pair."""
    return [
        int.from_bytes(
            hashlib.sha256(statement_id + interactive_randomness + i.to_bytes(4, "big")).digest(),
            "big",
        ) % leaf_count
        for i in range(CHALLENGE_COUNT)
    ]


def binding_tag(
    miner_id: int,
    sector_num: int,
    proof_type: ProofType,
    sealed: str,
    unsealed: str,
    statement_id: bytes,
    interactive_randomness: bytes,
) -> bytes:
    transcript = {
        "interactive_randomness": interactive_randomness.hex(),
        "miner_id": miner_id,
        "proof_type": int(proof_type),
        "sealed_cid": sealed,
        "sector_num": sector_num,
        "statement_id": statement_id.hex(),
        "unsealed_cid": unsealed,
    }
    return hashlib.sha256(canonical_bytes(transcript)).digest()


def _leaf_count(proof_type: ProofType) -> int:
    size = proof_type.sector_size()
    return size // leaf_size_for(size)


def generate_proof(sealed_path: Union[str, Path], statement: Statement, challenge: Challenge) -> Proof:
    """Open the challenged leaves of the sealed replica."""
    if challenge.statement_id != statement.id:
        raise BackendError("challenge does not reference the statement being proven")
    try:
        tree = tree_from_file(sealed_path, statement.proof_type.sector_size())
    except OSError as e:
        raise BackendError(f"cannot read sealed replica {sealed_path}: {e}") from e
    if make_cid(SEALED_CID_PREFIX, tree.root) != statement.sealed_cid:
        raise BackendError(f"sealed replica {sealed_path} no longer matches {statement.sealed_cid}")

    leaves = []
    for index in challenge_indices(statement.id, challenge.content, tree.leaf_count):
        leaves.append(ProofLeaf(
            index=index,
            leaf=tree.leaf(index).hex(),
            path=[[sibling.hex(), is_right] for sibling, is_right in tree.get_path(index)],
        ))
    tag = binding_tag(
        statement.miner_id,
        statement.sector_num,
        statement.proof_type,
        statement.sealed_cid,
        statement.unsealed_cid,
        statement.id,
        challenge.content,
    )
    payload = ProofPayload(leaves=leaves, tag=tag.hex())
    return Proof(content=canonical_bytes(payload.model_dump()))


def verify_seal(info: SealVerifyInfo) -> bool:
    """Check a proof against the public statement fields and the challenge.

    Returns False when the proof is rejected. Raises BackendError when the
    proof cannot even be decoded, which is a failed computation, not a verdict.
    """
    try:
        payload = ProofPayload.model_validate(json.loads(info.proof.decode("utf-8")))
        root = cid_digest(info.sealed_cid)
    except ValueError as e:
        raise BackendError(f"cannot decode proof: {e}") from e

    if payload.version != PROOF_FORMAT_VERSION:
        raise BackendError(f"unsupported proof format version {payload.version}")

    expected_tag = binding_tag(
        info.miner_id,
        info.sector_num,
        info.proof_type,
        info.sealed_cid,
        info.unsealed_cid,
        info.randomness,
        info.interactive_randomness,
    )
    if payload.tag != expected_tag.hex():
        logger.debug("Proof rejected: transcript tag mismatch")
        return False

    expected = challenge_indices(info.randomness, info.interactive_randomness, _leaf_count(info.proof_type))
    if [leaf.index for leaf in payload.leaves] != expected:
        logger.debug("Proof rejected: challenged indices mismatch")
        return False

    for leaf in payload.leaves:
        try:
            path = [(bytes.fromhex(str(sibling)), bool(is_right)) for sibling, is_right in leaf.path]
            candidate = root_from_path(bytes.fromhex(leaf.leaf), leaf.index, path)
        except ValueError:
            logger.debug("Proof rejected: malformed path for leaf %d", leaf.index)
            return False
        if candidate != root:
            logger.debug("Proof rejected: leaf %d does not open to commr", leaf.index)
            return False
    return True
