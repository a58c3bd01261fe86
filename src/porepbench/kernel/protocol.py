"""Pydantic models for the statement/challenge/proof protocol values.

Byte fields travel through JSON as standard base64 strings so that a record
written by one process can be decoded by another (and read by a human).
"""

import base64
import binascii
import re
from typing import Annotated, Any, List

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, field_validator

from .proof_types import ProofType

STATEMENT_ID_LEN = 32
RANDOMNESS_LEN = 32

SEALED_CID_PREFIX = "commr:"
UNSEALED_CID_PREFIX = "commd:"
PIECE_CID_PREFIX = "commp:"

_DIGEST_HEX = re.compile(r"^[0-9a-f]{64}$")


def _decode_b64(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64 value: {e}") from e
    return value


B64Bytes = Annotated[
    bytes,
    BeforeValidator(_decode_b64),
    PlainSerializer(lambda b: base64.b64encode(b).decode("ascii"), return_type=str, when_used="json"),
]


def b64(data: bytes) -> str:
    """Standard base64 text of raw bytes (map keys, log lines)."""
    return base64.b64encode(data).decode("ascii")


def make_cid(prefix: str, digest: bytes) -> str:
    """Build a content identifier from a codec prefix and a sha256 digest."""
    return prefix + digest.hex()


def cid_digest(cid: str) -> bytes:
    """Raw digest bytes of a content identifier."""
    _, _, hex_digest = cid.partition(":")
    return bytes.fromhex(hex_digest)


def _check_cid(value: str, prefix: str) -> str:
    if not value.startswith(prefix) or not _DIGEST_HEX.match(value[len(prefix):]):
        raise ValueError(f"'{value}' is not a well-formed '{prefix}' content identifier")
    return value


class PieceInfo(BaseModel):
    """One assembled piece of a sector."""
    size: int = Field(..., ge=0)
    piece_cid: str

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("piece_cid")
    @classmethod
    def validate_piece_cid(cls, v: str) -> str:
        return _check_cid(v, PIECE_CID_PREFIX)


class Statement(BaseModel):
    """A prover's commitment to one sealed sector.

    Frozen: a statement never changes after the backend produced it. The
    structural checks below are the only validation the validator relies on.
    """
    id: B64Bytes
    sector_num: int = Field(..., ge=0)
    proof_type: ProofType
    sealed_cid: str
    unsealed_cid: str
    pieces: List[PieceInfo] = Field(default_factory=list)
    miner_id: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: bytes) -> bytes:
        if len(v) != STATEMENT_ID_LEN:
            raise ValueError(f"statement id must be {STATEMENT_ID_LEN} bytes, got {len(v)}")
        return v

    @field_validator("sealed_cid")
    @classmethod
    def validate_sealed_cid(cls, v: str) -> str:
        return _check_cid(v, SEALED_CID_PREFIX)

    @field_validator("unsealed_cid")
    @classmethod
    def validate_unsealed_cid(cls, v: str) -> str:
        return _check_cid(v, UNSEALED_CID_PREFIX)


class Challenge(BaseModel):
    """Interactive randomness bound to one statement (by id, not ownership)."""
    statement_id: B64Bytes
    content: B64Bytes

    model_config = ConfigDict(frozen=True, extra="ignore")


class Proof(BaseModel):
    """Opaque proof bytes answering one challenge."""
    content: B64Bytes

    model_config = ConfigDict(frozen=True, extra="ignore")


class SealVerifyInfo(BaseModel):
    """Everything the verification routine needs, taken from a statement/challenge/proof triple."""
    miner_id: int
    sector_num: int
    proof_type: ProofType
    sealed_cid: str
    unsealed_cid: str
    randomness: B64Bytes  # the statement id
    interactive_randomness: B64Bytes  # the challenge content
    proof: B64Bytes

    model_config = ConfigDict(frozen=True)
