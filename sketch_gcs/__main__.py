import argparse
import dataclasses
import logging
from typing import List, Optional, Sequence

from sketch_gcs.demo import SCENARIOS, ScenarioResult, run_scenario
from sketch_gcs.solver import get_solver_options

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _print_result(result: ScenarioResult) -> None:
    report = result.report
    print(f"Scenario: {result.name}")
    print(f"  status: {report.status}")
    print(f"  converged: {report.converged}")
    print(f"  iterations: {report.iterations}")
    print(f"  max error: {report.max_error:.3e}")
    print(f"  expected outcome: {'yes' if result.ok else 'NO'}")
    if report.warnings:
        print("  warnings:")
        for warning in report.warnings:
            print(f"    - {warning}")
    print("  coordinates:")
    for label, (x, y) in result.coords.items():
        print(f"    {label}: ({x:.6f}, {y:.6f})")


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Solve built-in constraint sketches")
    parser.add_argument(
        "scenarios",
        nargs="*",
        help="Scenario names to solve (default: all)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the available scenarios and exit",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        help="Maximum outer iterations of the solver",
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        help="Convergence tolerance on the largest residual",
    )
    parser.add_argument(
        "--method",
        choices=["lm", "trf"],
        default="lm",
        help="Solver backend (default: lm)",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    if args.list:
        for name, scenario in SCENARIOS.items():
            print(f"{name}: {scenario.description}")
        return

    names: List[str] = list(args.scenarios) or list(SCENARIOS)
    unknown = [name for name in names if name not in SCENARIOS]
    if unknown:
        parser.error(f"unknown scenario(s): {', '.join(unknown)}")

    options = get_solver_options()
    overrides = {"method": args.method}
    if args.max_iterations is not None:
        overrides["max_iterations"] = args.max_iterations
    if args.tolerance is not None:
        overrides["tolerance"] = args.tolerance
    options = dataclasses.replace(options, **overrides)

    failed = 0
    for name in names:
        logger.info("Solving scenario %s", name)
        result = run_scenario(name, options)
        _print_result(result)
        if not result.ok:
            failed += 1

    if failed:
        logger.error("%d scenario(s) did not reach their expected outcome", failed)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
