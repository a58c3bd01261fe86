"""Validator: the verifying party's protocol state machine.

1. accept the statement committed by the miner
2. fire an unpredictable challenge bound to it
3. verify the proof the miner answers with

States move strictly forward: EMPTY -> COMMITTED -> CHALLENGED -> VERIFIED.
Using an operation before its precondition holds raises PreconditionError;
those are driver bugs and are never recovered.
"""

import logging
import secrets
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from porepbench.errors import PreconditionError
from .protocol import RANDOMNESS_LEN, Challenge, Proof, SealVerifyInfo, Statement, b64

logger = logging.getLogger(__name__)

SealVerifier = Callable[[SealVerifyInfo], bool]


class ValidatorState(str, Enum):
    EMPTY = "empty"
    COMMITTED = "committed"
    CHALLENGED = "challenged"
    VERIFIED = "verified"


class Keeper(BaseModel):
    """Two-slot register holding the current statement and challenge.

    Not a history: setting a slot discards the previous value. No validation
    happens here.
    """
    statement: Optional[Statement] = None
    challenge: Optional[Challenge] = None

    model_config = ConfigDict(extra="ignore")

    def set_statement(self, st: Statement) -> None:
        self.statement = st

    def get_statement(self) -> Optional[Statement]:
        return self.statement

    def pick_statement(self) -> Optional[Statement]:
        """Statement to challenge next (the only one there is)."""
        return self.statement

    def set_challenge(self, chal: Challenge) -> None:
        self.challenge = chal

    def get_challenge(self) -> Optional[Challenge]:
        return self.challenge


def porep_challenge() -> bytes:
    """Fresh interactive randomness from the OS CSPRNG.

    A failing entropy source raises; there is no weaker fallback.
    """
    return secrets.token_bytes(RANDOMNESS_LEN)


class Validator(BaseModel):
    """The verifier's full protocol state for one benchmark run."""
    keeper: Keeper = Field(default_factory=Keeper)
    outcome: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def state(self) -> ValidatorState:
        if self.keeper.statement is None:
            return ValidatorState.EMPTY
        if self.keeper.challenge is None:
            return ValidatorState.COMMITTED
        if self.outcome is None:
            return ValidatorState.CHALLENGED
        return ValidatorState.VERIFIED

    def handle_statement(self, st: Statement) -> None:
        """Accept a statement committed by the miner.

        A previous challenge referenced the previous statement, so it is dropped.
        """
        self.keeper.set_statement(st)
        self.keeper.challenge = None
        self.outcome = None
        logger.info("Accepted statement %s (sector %d)", b64(st.id), st.sector_num)

    def generate_challenge(self) -> Challenge:
        """Bind fresh interactive randomness to the live statement."""
        st = self.keeper.pick_statement()
        if st is None:
            raise PreconditionError("cannot generate a challenge: no statement has been committed")
        if self.keeper.get_challenge() is not None:
            logger.warning("Replacing the live challenge for statement %s; the old one is lost", b64(st.id))

        chal = Challenge(statement_id=st.id, content=porep_challenge())
        self.keeper.set_challenge(chal)
        self.outcome = None
        return chal

    def query_challenge_set(self) -> Optional[Challenge]:
        return self.keeper.get_challenge()

    def verify_proof(self, proof: Proof, verifier: Optional[SealVerifier] = None) -> bool:
        """Check a proof against the live statement and challenge.

        Returns False for a rejected proof. A verifier that fails to compute
        raises (BackendError) instead, so the two outcomes stay distinct.
        """
        st = self.keeper.get_statement()
        chal = self.keeper.get_challenge()
        if st is None:
            raise PreconditionError("cannot verify a proof: no statement has been committed")
        if chal is None:
            raise PreconditionError("cannot verify a proof: no challenge has been generated")
        if chal.statement_id != st.id:
            raise PreconditionError("live challenge does not reference the live statement")

        if verifier is None:
            from porepbench.prover.sealing import verify_seal
            verifier = verify_seal

        info = SealVerifyInfo(
            miner_id=st.miner_id,
            sector_num=st.sector_num,
            proof_type=st.proof_type,
            sealed_cid=st.sealed_cid,
            unsealed_cid=st.unsealed_cid,
            randomness=st.id,
            interactive_randomness=chal.content,
            proof=proof.content,
        )
        is_valid = bool(verifier(info))
        self.outcome = is_valid
        logger.info("Proof for statement %s verified: %s", b64(st.id), "PASS" if is_valid else "FAIL")
        return is_valid
