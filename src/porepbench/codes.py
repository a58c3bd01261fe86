"""Phase and exit code constants for porepbench.

These constants prevent stringly-typed phase selectors across the CLI,
the orchestrator, and report file names.
"""

from enum import Enum, IntEnum


class Phase(str, Enum):
    """The two independently invoked benchmark phases."""
    
    # commit: assemble pieces, seal, hand the statement to the validator
    STEP1 = "step1"
    # challenge + prove + verify against the step1 snapshot
    STEP2 = "step2"


class ExitCode(IntEnum):
    """Process exit codes used by the CLI."""
    
    OK = 0
    # usage problems exit 0 as well: they are not benchmark failures
    USAGE = 0
    FAILED = 1
