"""Phase performance benchmarks (gated)."""

from __future__ import annotations

import pytest

from porepbench._internal.config import BenchConfig
from porepbench._internal.store import open_store
from porepbench.bench import run_step1, run_step2
from porepbench.kernel.proof_types import ProofType

TWO_K = ProofType.STACKED_DRG_2KIB_V1


def _assert_budget(benchmark, max_ms: float) -> None:
    mean_ms = benchmark.stats.stats.mean * 1000.0
    assert mean_ms < max_ms, f"Mean {mean_ms:.2f} ms exceeded budget {max_ms:.2f} ms"


@pytest.mark.perf
def test_step1_2k(benchmark, tmp_path):
    config = BenchConfig.from_env()
    with open_store(tmp_path / "bench.sqlite3") as store:
        result = benchmark.pedantic(lambda: run_step1(tmp_path / "sample", TWO_K, store), rounds=3, iterations=1)
    assert [s.name for s in result.report.steps] == ["Assemble", "Setup"]
    _assert_budget(benchmark, config.max_step1_ms)


@pytest.mark.perf
def test_step2_2k(benchmark, tmp_path):
    config = BenchConfig.from_env()
    with open_store(tmp_path / "bench.sqlite3") as store:
        run_step1(tmp_path / "sample", TWO_K, store)
        result = benchmark.pedantic(lambda: run_step2(tmp_path / "sample", TWO_K, store), rounds=3, iterations=1)
    assert result.is_valid
    _assert_budget(benchmark, config.max_step2_ms)
