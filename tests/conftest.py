"""Pytest configuration and shared fixtures.

No sys.path hacks - tests import from the installed porepbench package.
"""

import os
import secrets
from pathlib import Path

import pytest

from porepbench._internal.store import KVStore
from porepbench.kernel.proof_types import ProofType
from porepbench.kernel.protocol import Statement


def pytest_addoption(parser):
    """Add gated perf test option."""
    parser.addoption(
        "--run-perf",
        action="store_true",
        default=False,
        help="Run phase performance benchmarks (gated)."
    )


def pytest_collection_modifyitems(config, items):
    """Skip perf-marked tests unless --run-perf is set."""
    if config.getoption("--run-perf"):
        return
    skip_perf = pytest.mark.skip(reason="perf tests gated; pass --run-perf")
    for item in items:
        if "perf" in item.keywords:
            item.add_marker(skip_perf)


@pytest.fixture
def store(tmp_path):
    """A fresh store file, closed after the test."""
    kv = KVStore(tmp_path / "bench.sqlite3")
    yield kv
    kv.close()


@pytest.fixture
def make_statement():
    """Factory for structurally valid statements."""
    def _make(**overrides) -> Statement:
        fields = {
            "id": secrets.token_bytes(32),
            "sector_num": 0,
            "proof_type": ProofType.STACKED_DRG_2KIB_V1,
            "sealed_cid": "commr:" + "ab" * 32,
            "unsealed_cid": "commd:" + "cd" * 32,
            "pieces": [{"size": 2032, "piece_cid": "commp:" + "ef" * 32}],
            "miner_id": 1000,
        }
        fields.update(overrides)
        return Statement(**fields)
    return _make
