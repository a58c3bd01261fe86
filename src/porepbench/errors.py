"""Exception taxonomy for porepbench.

Library code raises these; only the CLI decides process exit behavior.
Every failure is fatal to the current phase and nothing is retried.
"""


class BenchError(Exception):
    """Base class for all benchmark failures."""
    pass


class PreconditionError(BenchError, RuntimeError):
    """Protocol state machine used out of order (a driver bug, never a data condition)."""
    pass


class BackendError(BenchError):
    """The proving backend failed to compute (sealing, proving, or verification)."""
    pass


class StoreError(BenchError):
    """The persistent store could not be read or written."""
    pass


class RecordNotFoundError(StoreError, KeyError):
    """A singleton record expected in the store is absent."""

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0]) if self.args else ""


class VerificationFailedError(BenchError):
    """The validator rejected the proof; the timing report would be misleading."""
    pass
