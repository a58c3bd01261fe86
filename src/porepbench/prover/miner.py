"""Miner: the proving party of the benchmark.

The miner owns the sector files on disk and two lookup collections:
file_db (opaque file id -> path) and statement_db (statement id -> Statement),
both keyed by base64 text. Those collections are persisted as individual
store records, the rest of the miner as one singleton record.
"""

import logging
import shutil
from enum import IntEnum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from porepbench.errors import BackendError, PreconditionError
from porepbench.kernel.proof_types import ProofType, unpadded_space
from porepbench.kernel.protocol import Challenge, PieceInfo, Proof, Statement, b64
from porepbench.kernel.validator import Validator
from . import sealing

logger = logging.getLogger(__name__)


class FileKind(IntEnum):
    STAGED = 0x01
    SEALED = 0x02
    CACHE = 0x03


def file_id(kind: FileKind, sector_num: int) -> bytes:
    """Opaque binary identifier of one sector file or directory."""
    return bytes([kind]) + sector_num.to_bytes(8, "big")


class SectorPaths(BaseModel):
    staged: Path
    sealed: Path
    cache: Path


class MinerStorage(BaseModel):
    file_db: Dict[str, str] = Field(default_factory=dict)
    statement_db: Dict[str, Statement] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")


class Miner(BaseModel):
    miner_id: int = Field(..., ge=0)
    proof_type: ProofType
    next_sector_num: int = 0
    store: MinerStorage = Field(default_factory=MinerStorage)

    model_config = ConfigDict(extra="ignore")

    _validator: Optional[Validator] = PrivateAttr(default=None)

    @classmethod
    def new(cls, miner_id: int, proof_type: ProofType) -> "Miner":
        return cls(miner_id=miner_id, proof_type=proof_type)

    @property
    def validator(self) -> Optional[Validator]:
        return self._validator

    def pledge(self, validator: Validator) -> None:
        """Register with the validator that will challenge this miner."""
        self._validator = validator

    def sector_name(self, sector_num: int) -> str:
        return f"s-t0{self.miner_id}-{sector_num}"

    def _register_file(self, kind: FileKind, sector_num: int, path: Path) -> None:
        self.store.file_db[b64(file_id(kind, sector_num))] = str(path)

    def lookup_file(self, kind: FileKind, sector_num: int) -> Path:
        key = b64(file_id(kind, sector_num))
        if key not in self.store.file_db:
            raise BackendError(f"no {kind.name.lower()} file registered for sector {sector_num}")
        return Path(self.store.file_db[key])

    def init_sector_dir(self, working_dir: Union[str, Path]) -> SectorPaths:
        """Lay out staged/sealed/cache locations for the next sector."""
        root = Path(working_dir)
        name = self.sector_name(self.next_sector_num)
        paths = SectorPaths(
            staged=root / "staged" / name,
            sealed=root / "sealed" / name,
            cache=root / "cache" / name,
        )
        paths.staged.parent.mkdir(parents=True, exist_ok=True)
        paths.sealed.parent.mkdir(parents=True, exist_ok=True)
        paths.cache.mkdir(parents=True, exist_ok=True)
        paths.staged.touch()

        self._register_file(FileKind.STAGED, self.next_sector_num, paths.staged)
        self._register_file(FileKind.SEALED, self.next_sector_num, paths.sealed)
        self._register_file(FileKind.CACHE, self.next_sector_num, paths.cache)
        return paths

    def assemble_pieces(self, staged: Union[str, Path], input_files: Sequence[Union[str, Path]]) -> List[PieceInfo]:
        """Append each input file to the staged sector, one piece per file."""
        capacity = unpadded_space(self.proof_type.sector_size())
        staged_path = Path(staged)
        used = staged_path.stat().st_size if staged_path.exists() else 0

        pieces = []
        with open(staged_path, "ab") as out:
            for item in input_files:
                src = Path(item)
                size = src.stat().st_size
                if used + size > capacity:
                    raise BackendError(
                        f"piece {src} ({size} bytes) does not fit: {capacity - used} of {capacity} bytes left"
                    )
                with open(src, "rb") as f:
                    shutil.copyfileobj(f, out)
                used += size
                pieces.append(PieceInfo(size=size, piece_cid=sealing.piece_cid(src)))
        logger.info("Assembled %d piece(s) into %s (%d bytes)", len(pieces), staged_path, used)
        return pieces

    def commit_statement(
        self,
        statement_id: bytes,
        nonce: int,
        working_dir: Union[str, Path],
        pieces: List[PieceInfo],
    ) -> Statement:
        """Seal the staged sector and commit to it."""
        sector_num = self.next_sector_num
        staged = self.lookup_file(FileKind.STAGED, sector_num)
        sealed = self.lookup_file(FileKind.SEALED, sector_num)
        if not staged.resolve().is_relative_to(Path(working_dir).resolve()):
            raise BackendError(f"staged sector {staged} is outside working directory {working_dir}")

        sector_size = self.proof_type.sector_size()
        try:
            comm_d = sealing.unsealed_cid(staged, sector_size)
            rep_id = sealing.replica_id(self.miner_id, sector_num, statement_id, nonce, comm_d)
            comm_r = sealing.seal_sector(staged, sealed, sector_size, rep_id)
        except OSError as e:
            raise BackendError(f"sealing sector {sector_num} failed: {e}") from e

        statement = Statement(
            id=statement_id,
            sector_num=sector_num,
            proof_type=self.proof_type,
            sealed_cid=comm_r,
            unsealed_cid=comm_d,
            pieces=pieces,
            miner_id=self.miner_id,
        )
        self.store.statement_db[b64(statement.id)] = statement
        self.next_sector_num += 1
        return statement

    def query_challenge_set(self) -> Challenge:
        """Fetch the live challenge from the pledged validator."""
        if self._validator is None:
            raise PreconditionError("miner has not pledged to a validator")
        chal = self._validator.query_challenge_set()
        if chal is None:
            raise PreconditionError("validator has no live challenge")
        return chal

    def response_to_challenge(self, challenge: Challenge) -> Proof:
        """Prove possession of the sealed replica the challenge points at."""
        key = b64(challenge.statement_id)
        statement = self.store.statement_db.get(key)
        if statement is None:
            raise BackendError(f"miner has no statement {key}")
        sealed = self.lookup_file(FileKind.SEALED, statement.sector_num)
        return sealing.generate_proof(sealed, statement, challenge)
