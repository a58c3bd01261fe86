"""Tests for the keeper register and the validator state machine."""

import logging

import pytest

from porepbench.errors import BackendError, PreconditionError
from porepbench.kernel.protocol import Challenge, Proof, SealVerifyInfo
from porepbench.kernel.validator import Keeper, Validator, ValidatorState


class TestKeeper:

    def test_empty_slots_return_none(self):
        keeper = Keeper()
        assert keeper.get_statement() is None
        assert keeper.pick_statement() is None
        assert keeper.get_challenge() is None

    def test_setting_replaces_previous_value(self, make_statement):
        keeper = Keeper()
        first, second = make_statement(), make_statement()
        keeper.set_statement(first)
        keeper.set_statement(second)
        assert keeper.get_statement() is second


class TestValidatorStates:

    def test_full_cycle(self, make_statement):
        v = Validator()
        assert v.state is ValidatorState.EMPTY

        v.handle_statement(make_statement())
        assert v.state is ValidatorState.COMMITTED

        v.generate_challenge()
        assert v.state is ValidatorState.CHALLENGED

        assert v.verify_proof(Proof(content=b"ok"), verifier=lambda info: True) is True
        assert v.state is ValidatorState.VERIFIED
        assert v.outcome is True

    def test_new_statement_drops_live_challenge(self, make_statement):
        v = Validator()
        v.handle_statement(make_statement())
        v.generate_challenge()
        v.handle_statement(make_statement())
        assert v.keeper.get_challenge() is None
        assert v.state is ValidatorState.COMMITTED


class TestGenerateChallenge:

    def test_without_statement_is_precondition_violation(self):
        v = Validator()
        with pytest.raises(PreconditionError, match="no statement"):
            v.generate_challenge()
        assert v.keeper.get_challenge() is None

    def test_challenge_references_live_statement(self, make_statement):
        v = Validator()
        st = make_statement()
        v.handle_statement(st)
        chal = v.generate_challenge()
        assert chal.statement_id == st.id
        assert len(chal.content) == 32
        assert v.query_challenge_set() is chal

    def test_second_challenge_replaces_first(self, make_statement, caplog):
        v = Validator()
        v.handle_statement(make_statement())
        first = v.generate_challenge()
        with caplog.at_level(logging.WARNING, logger="porepbench.kernel.validator"):
            second = v.generate_challenge()
        assert v.keeper.get_challenge() is second
        assert second.content != first.content
        assert "Replacing the live challenge" in caplog.text

    def test_randomness_failure_is_not_swallowed(self, make_statement, monkeypatch):
        def broken(n):
            raise OSError("entropy source unavailable")

        statement = make_statement()
        monkeypatch.setattr("porepbench.kernel.validator.secrets.token_bytes", broken)
        v = Validator()
        v.handle_statement(statement)
        with pytest.raises(OSError, match="entropy"):
            v.generate_challenge()
        assert v.keeper.get_challenge() is None


class TestVerifyProof:

    def test_without_statement_is_precondition_violation(self):
        with pytest.raises(PreconditionError, match="no statement"):
            Validator().verify_proof(Proof(content=b"x"), verifier=lambda info: True)

    def test_without_challenge_is_precondition_violation(self, make_statement):
        v = Validator()
        v.handle_statement(make_statement())
        with pytest.raises(PreconditionError, match="no challenge"):
            v.verify_proof(Proof(content=b"x"), verifier=lambda info: True)

    def test_verifier_receives_statement_and_challenge_fields(self, make_statement):
        seen = []
        v = Validator()
        st = make_statement(sector_num=4, miner_id=77)
        v.handle_statement(st)
        chal = v.generate_challenge()

        def verifier(info: SealVerifyInfo) -> bool:
            seen.append(info)
            return True

        v.verify_proof(Proof(content=b"proof-bytes"), verifier=verifier)

        info = seen[0]
        assert info.miner_id == 77
        assert info.sector_num == 4
        assert info.proof_type == st.proof_type
        assert info.sealed_cid == st.sealed_cid
        assert info.unsealed_cid == st.unsealed_cid
        assert info.randomness == st.id
        assert info.interactive_randomness == chal.content
        assert info.proof == b"proof-bytes"

    def test_rejected_proof_returns_false(self, make_statement):
        v = Validator()
        v.handle_statement(make_statement())
        v.generate_challenge()
        assert v.verify_proof(Proof(content=b"x"), verifier=lambda info: False) is False
        assert v.outcome is False
        assert v.state is ValidatorState.VERIFIED

    def test_backend_error_is_distinct_from_rejection(self, make_statement):
        def failing(info):
            raise BackendError("verifier crashed")

        v = Validator()
        v.handle_statement(make_statement())
        v.generate_challenge()
        with pytest.raises(BackendError, match="crashed"):
            v.verify_proof(Proof(content=b"x"), verifier=failing)
        assert v.outcome is None
        assert v.state is ValidatorState.CHALLENGED

    def test_challenge_for_other_statement_is_rejected(self, make_statement):
        v = Validator()
        v.handle_statement(make_statement())
        v.keeper.set_challenge(Challenge(statement_id=b"\x00" * 32, content=b"\x01" * 32))
        with pytest.raises(PreconditionError, match="does not reference"):
            v.verify_proof(Proof(content=b"x"), verifier=lambda info: True)


def test_validator_survives_json_round_trip(make_statement):
    v = Validator()
    st = make_statement()
    v.handle_statement(st)
    restored = Validator.model_validate_json(v.model_dump_json())
    assert restored.keeper.get_statement() == st
    assert restored.keeper.get_challenge() is None
    assert restored.state is ValidatorState.COMMITTED
