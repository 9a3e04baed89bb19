"""Command-line interface for pharma-assurance.

Offline subcommands for inspecting the engine without any model access.
Each subcommand imports its dependencies lazily.

Entry point
-----------
The ``main()`` function is registered as a console script in
``pyproject.toml``::

    [project.scripts]
    pharma-assurance = "pharma_assurance.cli:main"

Usage examples::

    pharma-assurance params --target KRAS --indication "pancreatic cancer" --area oncology
    pharma-assurance calc cagr 2e9 5e8 5
    pharma-assurance calc strategic-fit --a 1,0,1 --b 1,1,1
    pharma-assurance audit --input report.json --indication "Duchenne muscular dystrophy"
    pharma-assurance info
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any


def _add_context_arguments(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument("--target", type=str, required=required, default="unspecified",
                        help="Molecular target or asset.")
    parser.add_argument("--indication", type=str, required=required, default="unspecified",
                        help="Disease indication.")
    parser.add_argument("--area", type=str, default="",
                        help="Therapeutic area (e.g. oncology, rare disease).")
    parser.add_argument("--geography", type=str, default="Global",
                        help="Commercial geography. (default: Global)")
    parser.add_argument("--phase", type=str, default="Phase 2",
                        help="Development phase. (default: Phase 2)")


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="pharma-assurance",
        description=(
            "Adaptive quality assurance for pharmaceutical commercial "
            "intelligence -- parameter selection, calculations and audits."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        default=False,
        help="Show version and exit.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- params ------------------------------------------------------------
    params_parser = subparsers.add_parser(
        "params",
        help="Print the research parameters selected for a context.",
    )
    _add_context_arguments(params_parser, required=True)

    # -- calc --------------------------------------------------------------
    calc_parser = subparsers.add_parser(
        "calc",
        help="Run a deterministic calculation.",
        description=(
            "cagr PEAK CURRENT YEARS | peak-patients REVENUE PRICE PERSISTENCE | "
            "pipeline-density SAME TOTAL | strategic-fit --a V --b V"
        ),
    )
    calc_parser.add_argument(
        "function",
        choices=["cagr", "peak-patients", "pipeline-density", "strategic-fit"],
    )
    calc_parser.add_argument("values", nargs="*", type=float, help="Positional inputs.")
    calc_parser.add_argument("--a", type=str, default=None,
                             help="Comma-separated vector A (strategic-fit).")
    calc_parser.add_argument("--b", type=str, default=None,
                             help="Comma-separated vector B (strategic-fit).")

    # -- audit -------------------------------------------------------------
    audit_parser = subparsers.add_parser(
        "audit",
        help="Run the deterministic consistency audit on a JSON report.",
        description="Exit status is 2 when the report has blocking issues.",
    )
    audit_parser.add_argument("--input", type=str, required=True,
                              help="Path to the report JSON file.")
    _add_context_arguments(audit_parser, required=False)

    # -- info --------------------------------------------------------------
    subparsers.add_parser(
        "info",
        help="Show version, quality categories and dependency status.",
    )

    return parser


# =========================================================================
# Subcommand handlers
# =========================================================================

def _context_from(args: argparse.Namespace) -> Any:
    from pharma_assurance.domain.values import ResearchContext

    return ResearchContext(
        target=args.target,
        indication=args.indication,
        therapeutic_area=args.area,
        geography=args.geography,
        phase=args.phase,
    )


def _cmd_params(args: argparse.Namespace) -> int:
    """Handle the ``params`` subcommand."""
    from pharma_assurance.infrastructure.serialization import parameters_to_dict
    from pharma_assurance.services.parameters import ParameterSelector

    params = ParameterSelector().select(_context_from(args))
    print(json.dumps(parameters_to_dict(params), indent=2))
    return 0


def _parse_vector(raw: str | None, name: str) -> list[float]:
    if not raw:
        raise ValueError(f"strategic-fit requires --{name}")
    return [float(x.strip()) for x in raw.split(",") if x.strip()]


def _cmd_calc(args: argparse.Namespace) -> int:
    """Handle the ``calc`` subcommand."""
    from pharma_assurance.services import calculator

    arity = {"cagr": 3, "peak-patients": 3, "pipeline-density": 2}
    if args.function == "strategic-fit":
        value = calculator.strategic_fit(_parse_vector(args.a, "a"), _parse_vector(args.b, "b"))
    else:
        expected = arity[args.function]
        if len(args.values) != expected:
            print(
                f"Error: {args.function} takes {expected} values, got {len(args.values)}",
                file=sys.stderr,
            )
            return 1
        fn = {
            "cagr": calculator.cagr,
            "peak-patients": calculator.peak_patients,
            "pipeline-density": calculator.pipeline_density,
        }[args.function]
        value = fn(*args.values)
    print(json.dumps({"function": args.function, "value": value}))
    return 0


def _cmd_audit(args: argparse.Namespace) -> int:
    """Handle the ``audit`` subcommand."""
    from pharma_assurance.infrastructure.serialization import to_plain
    from pharma_assurance.services.consistency import CandidateAuditor
    from pharma_assurance.services.parsing import parse_candidate

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: file not found: {input_path}", file=sys.stderr)
        return 1
    report = parse_candidate(input_path.read_text(encoding="utf-8"))
    context = _context_from(args)
    audit = CandidateAuditor().audit(report, context)
    print(
        json.dumps(
            {
                "score": round(audit.score, 4),
                "section_scores": dict(audit.section_scores),
                "computed": dict(audit.computed),
                "issues": [to_plain(issue) for issue in audit.issues],
            },
            indent=2,
        )
    )
    return 2 if audit.blocking_issues else 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Handle the ``info`` subcommand."""
    from pharma_assurance import __version__
    from pharma_assurance.domain.values import CATEGORY_WEIGHTS

    print(f"pharma-assurance {__version__}")
    print()

    deps = {
        "numpy": "Strategic-fit vector math (required)",
        "pydantic": "Report model and structured outputs (required)",
        "langchain_core": "Chat-model capabilities (required)",
        "langgraph": "Graph form of the retry loop (required)",
    }
    print("Dependencies:")
    for pkg, desc in deps.items():
        try:
            mod = __import__(pkg)
            version = getattr(mod, "__version__", "unknown")
            print(f"  [installed] {pkg} {version} -- {desc}")
        except ImportError:
            print(f"  [missing]   {pkg} -- {desc}")
    print()

    print("Quality categories (weight):")
    for category, weight in CATEGORY_WEIGHTS.items():
        print(f"  {category.value:<24} {weight:.2f}")
    print()

    print("Orchestrator states:")
    print("  idle -> attempting -> scoring -> accepted | retrying | exhausted")
    return 0


# =========================================================================
# Main entry point
# =========================================================================

def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from pharma_assurance import __version__

        print(f"pharma-assurance {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handlers: dict[str, Any] = {
        "params": _cmd_params,
        "calc": _cmd_calc,
        "audit": _cmd_audit,
        "info": _cmd_info,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)
