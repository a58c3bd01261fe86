"""Step timing and per-phase reports."""

import time
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr

from porepbench._internal.canonical_json import canonical_dumps
from .proof_types import ProofType


def _trim_fraction(value: int, digits: int) -> str:
    whole, frac = divmod(value, 10 ** digits)
    frac_str = f"{frac:0{digits}d}".rstrip("0")
    return f"{whole}.{frac_str}" if frac_str else str(whole)


def format_duration(ns: int) -> str:
    """Render nanoseconds the way Go's time.Duration.String() does.

    Examples: 0 -> '0s', 850 -> '850ns', 12500 -> '12.5µs',
    1234000 -> '1.234ms', 90 s -> '1m30s', 3723 s -> '1h2m3s'.
    """
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    u = abs(ns)
    if u < 1_000:
        return f"{sign}{u}ns"
    if u < 1_000_000:
        return f"{sign}{_trim_fraction(u, 3)}µs"
    if u < 1_000_000_000:
        return f"{sign}{_trim_fraction(u, 6)}ms"

    secs, frac_ns = divmod(u, 1_000_000_000)
    hours, rem = divmod(secs, 3600)
    minutes, seconds = divmod(rem, 60)
    sec_str = _trim_fraction(seconds * 1_000_000_000 + frac_ns, 9)
    if hours:
        return f"{sign}{hours}h{minutes}m{sec_str}s"
    if minutes:
        return f"{sign}{minutes}m{sec_str}s"
    return f"{sign}{sec_str}s"


class StepMeasure(BaseModel):
    """Time cost of a single phase step.

    The clock starts when the measure is created; done() may be called more
    than once and always measures from that original start.
    """
    name: str
    cost: str = ""

    _start: int = PrivateAttr(default_factory=time.perf_counter_ns)
    _span: Optional[int] = PrivateAttr(default=None)

    def done(self) -> "StepMeasure":
        self._span = time.perf_counter_ns() - self._start
        self.cost = format_duration(self._span)
        return self

    @property
    def span_ns(self) -> int:
        """Elapsed nanoseconds (0 until done() has been called)."""
        return self._span or 0

    @property
    def is_done(self) -> bool:
        return self._span is not None


class Report(BaseModel):
    """Step measures of one benchmark phase, in completion order."""
    detail: str
    sector_size: str
    steps: List[StepMeasure] = Field(default_factory=list)
    total_cost: str = "0s"

    _total_span: int = PrivateAttr(default=0)

    @classmethod
    def new(cls, detail: str, proof_type: ProofType) -> "Report":
        return cls(detail=detail, sector_size=proof_type.sector_size_label())

    @property
    def total_span_ns(self) -> int:
        return self._total_span

    def add_step(self, step: StepMeasure) -> None:
        """Append a *done* step and grow the running total."""
        if not step.is_done:
            raise ValueError(f"step '{step.name}' must be done before it is added to a report")
        self.steps.append(step)
        self._total_span += step.span_ns
        self.total_cost = format_duration(self._total_span)

    def file_name(self, phase: Optional[str] = None) -> str:
        suffix = f"-{phase}" if phase else ""
        return f"report-{self.detail}-{self.sector_size}{suffix}.json"

    def dump(self, directory: Union[str, Path], phase: Optional[str] = None) -> Path:
        """Write the report as JSON into directory and return the file path."""
        out = Path(directory) / self.file_name(phase)
        out.write_text(canonical_dumps(self.model_dump(mode="json")) + "\n", encoding="utf-8")
        return out
