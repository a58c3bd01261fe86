"""porepbench CLI: run one phase of the two-phase PoRep benchmark."""

import argparse
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path

from .codes import ExitCode, Phase


def _usage(prog: str) -> str:
    return (
        "Require 3 arguments as input parameters.\n"
        "Example:\n"
        f"\t{prog} sample 2k step1|step2"
    )


class _BenchArgumentParser(argparse.ArgumentParser):
    """Argument errors print the usage example and exit like an invalid phase."""

    def error(self, message):
        print(f"{self.prog}: {message}", file=sys.stderr)
        print(_usage(self.prog))
        sys.exit(ExitCode.USAGE)


def main():
    """Main CLI entry point for porep-bench."""
    try:
        porepbench_version = get_version("porepbench")
    except PackageNotFoundError:
        porepbench_version = "dev"

    parser = _BenchArgumentParser(
        prog="porep-bench",
        description="Porepbench: two-phase commit/challenge/verify PoRep benchmark",
        epilog=_usage("porep-bench"),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"porepbench {porepbench_version}")
    parser.add_argument(
        "working_dir",
        type=Path,
        help="Working directory of the run (recreated by step1: existing contents are DELETED)"
    )
    parser.add_argument(
        "size",
        help="Sector size label: 2K, 8M, 512M or 32G (unknown labels fall back to 2K)"
    )
    parser.add_argument(
        "phase",
        help="Phase to run: step1 (commit) or step2 (challenge, prove, verify)"
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to the persistent store (defaults to $POREP_BENCH_DB or bench.sqlite3)"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log progress at INFO level."
    )

    args = parser.parse_args()

    from ._internal.config import BenchConfig, configure_logging

    try:
        config = BenchConfig.from_env(db_path=args.db, log_level="INFO" if args.verbose else None)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(ExitCode.FAILED)
    configure_logging(config.log_level)

    try:
        phase = Phase(args.phase)
    except ValueError:
        print(f"invalid value: {args.phase}, expect step1|step2")
        print(_usage(parser.prog))
        sys.exit(ExitCode.USAGE)

    # Lazy import: the prover stack is only loaded once a phase actually runs
    from .bench import run_phase
    from .errors import BenchError, RecordNotFoundError
    from .kernel.proof_types import parse_proof_type
    from .kernel.protocol import b64

    working_dir = Path(str(args.working_dir).strip())
    proof_type = parse_proof_type(args.size)

    try:
        result = run_phase(phase, working_dir, proof_type, config.db_path)
    except RecordNotFoundError as e:
        print(f"Error: {e} (run step1 first)", file=sys.stderr)
        sys.exit(ExitCode.FAILED)
    except (BenchError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(ExitCode.FAILED)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(ExitCode.FAILED)

    if phase is Phase.STEP2:
        # the statement id is the handle tying step2 back to step1
        print("statementID", b64(result.statement_id))

    if not args.quiet:
        print(f"[OK] {phase.value} complete")
        print(f"  Report: {result.report_path}")
        for step in result.report.steps:
            print(f"  {step.name}: {step.cost}")
        print(f"  Total: {result.report.total_cost}")
        if phase is Phase.STEP1:
            print(f"  Statement: {b64(result.statement_id)}")
        else:
            print(f"  Status: {'VALID' if result.is_valid else 'INVALID'}")
    sys.exit(ExitCode.OK)


if __name__ == "__main__":
    main()
