"""porepbench: two-phase PoRep commit/challenge/verify benchmark."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("porepbench")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from porepbench.bench import run_step1, run_step2, run_phase, Step1Result, Step2Result
from porepbench.codes import Phase
from porepbench.errors import (
    BenchError,
    PreconditionError,
    BackendError,
    StoreError,
    RecordNotFoundError,
    VerificationFailedError,
)

__all__ = [
    "__version__",
    "run_step1",
    "run_step2",
    "run_phase",
    "Step1Result",
    "Step2Result",
    "Phase",
    "BenchError",
    "PreconditionError",
    "BackendError",
    "StoreError",
    "RecordNotFoundError",
    "VerificationFailedError",
]
