"""Two-phase PoRep benchmark driver.

step1 (commit): assemble a synthetic sector, seal it, hand the statement to
the validator and snapshot miner + validator into the store.

step2 (challenge + prove + verify): restore both from the snapshot, challenge,
prove, verify. step2 never writes the snapshot back.

Every failure raises and ends the phase; nothing is retried.
"""

import logging
import random
import secrets
import shutil
import time
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel

from porepbench._internal.snapshot import clean_store, load_miner, load_validator, save_miner, save_validator
from porepbench._internal.store import KVStore, open_store
from porepbench.codes import Phase
from porepbench.errors import BenchError, VerificationFailedError
from porepbench.kernel.measure import Report, StepMeasure
from porepbench.kernel.proof_types import ProofType, unpadded_space
from porepbench.kernel.protocol import STATEMENT_ID_LEN, b64
from porepbench.kernel.validator import Validator
from porepbench.prover.fakedata import create_fake_data_file
from porepbench.prover.miner import Miner

logger = logging.getLogger(__name__)

FAKE_PIECE_NAME = "fakepiece.dat"


class Step1Result(BaseModel):
    """Outcome of the commit phase."""
    report: Report
    report_path: Path
    statement_id: bytes



class Step2Result(BaseModel):
    """Outcome of the challenge/prove/verify phase."""
    report: Report
    report_path: Path
    statement_id: bytes
    is_valid: bool



def new_statement_id() -> bytes:
    return secrets.token_bytes(STATEMENT_ID_LEN)


def _run_label(working_dir: Path) -> str:
    return working_dir.resolve().name


def _check_working_dir(working_dir: Path, store: KVStore) -> None:
    """Refuse working directories whose removal would take the caller's files along."""
    target = working_dir.resolve()
    cwd = Path.cwd().resolve()
    if cwd.is_relative_to(target):
        raise BenchError(f"refusing to recreate {working_dir}: it contains the current directory")
    if store.path.resolve().is_relative_to(target):
        raise BenchError(f"refusing to recreate {working_dir}: it contains the store {store.path}")


def _recreate_dir(working_dir: Path) -> None:
    # destructive: whatever already lives at working_dir is removed
    if working_dir.exists():
        logger.warning("Removing existing working directory %s", working_dir)
        if working_dir.is_dir():
            shutil.rmtree(working_dir)
        else:
            working_dir.unlink()
    working_dir.mkdir(parents=True)


def run_step1(
    working_dir: Union[str, Path],
    proof_type: ProofType,
    store: KVStore,
    seed: Optional[int] = None,
) -> Step1Result:
    working_dir = Path(working_dir)
    _check_working_dir(working_dir, store)
    clean_store(store)
    rng = random.Random(seed if seed is not None else time.time_ns())

    # initialize for the PoRep process
    sector_size = proof_type.sector_size()
    _recreate_dir(working_dir)
    fake_piece = create_fake_data_file(working_dir / FAKE_PIECE_NAME, unpadded_space(sector_size), rng)

    report = Report.new(_run_label(working_dir), proof_type)

    # prepare the roles; the miner pledges to the validator
    validator = Validator()
    miner = Miner.new(rng.getrandbits(63), proof_type)
    miner.pledge(validator)

    step = StepMeasure(name="Assemble")
    paths = miner.init_sector_dir(working_dir)
    pieces = miner.assemble_pieces(paths.staged, [fake_piece])
    report.add_step(step.done())

    step = StepMeasure(name="Setup")
    statement = miner.commit_statement(new_statement_id(), rng.getrandbits(64), working_dir, pieces)
    report.add_step(step.done())
    report_path = report.dump(working_dir, Phase.STEP1.value)

    validator.handle_statement(statement)

    with store.transaction():
        save_miner(store, miner)
        save_validator(store, validator)

    logger.info("step1 committed statement %s in %s", b64(statement.id), report.total_cost)
    return Step1Result(report=report, report_path=report_path, statement_id=statement.id)


def run_step2(
    working_dir: Union[str, Path],
    proof_type: ProofType,
    store: KVStore,
) -> Step2Result:
    working_dir = Path(working_dir)
    validator = load_validator(store)
    miner = load_miner(store)
    if miner.proof_type != proof_type:
        raise BenchError(
            f"step1 committed a {miner.proof_type.sector_size_label()} sector, "
            f"step2 was asked for {proof_type.sector_size_label()}"
        )

    report = Report.new(_run_label(working_dir), proof_type)

    challenge = validator.generate_challenge()
    statement_id = challenge.statement_id
    logger.info("step2 challenging statement %s", b64(statement_id))
    miner.pledge(validator)

    step = StepMeasure(name="Prove")
    proof = miner.response_to_challenge(miner.query_challenge_set())
    report.add_step(step.done())

    step = StepMeasure(name="Verify")
    is_valid = validator.verify_proof(proof)
    if not is_valid:
        raise VerificationFailedError(f"porep verification failed for statement {b64(statement_id)}")
    report.add_step(step.done())

    report_path = report.dump(working_dir, Phase.STEP2.value)
    return Step2Result(report=report, report_path=report_path, statement_id=statement_id, is_valid=is_valid)


def run_phase(
    phase: Phase,
    working_dir: Union[str, Path],
    proof_type: ProofType,
    db_path: Union[str, Path],
):
    """Open the store for exactly one phase and close it whatever happens."""
    with open_store(db_path) as store:
        if phase is Phase.STEP1:
            return run_step1(working_dir, proof_type, store)
        return run_step2(working_dir, proof_type, store)
