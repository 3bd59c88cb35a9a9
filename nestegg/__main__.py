"""CLI entry point for nestegg."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

from .engine import ProjectionResult, run_projection
from .schema import SchemaError, load_plan
from .tax import InvalidInputError
from .validate import validate_plan


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Retirement income and withdrawal projection")
    parser.add_argument("plan", help="Path to plan JSON file")
    parser.add_argument("-o", "--output", help="Write per-year result records to this JSON path")
    parser.add_argument("--validate", action="store_true", help="Validate JSON only")
    parser.add_argument("--summary", action="store_true", help="Print text summary to stdout")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def _print_summary(result: ProjectionResult) -> None:
    if not result.years:
        print("No years simulated.")
        return
    first = result.years[0]
    last = result.years[-1]
    total_tax = sum(year.taxes_federal for year in result.years)
    ending = last.savings_end + last.retirement_acct_401k_end + last.retirement_acct_roth_end
    print(f"Years: {first.year}-{last.year}")
    print(f"Total federal tax: ${total_tax:,.0f}")
    print(f"Ending balances: ${ending:,.0f}")
    print(f"Shortfall years: {len(result.shortfall_years)}")
    if result.shortfall_years:
        print(f"First shortfall: {result.shortfall_years[0]}")


def write_records(path: str | Path, result: ProjectionResult) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    records = [year.as_record() for year in result.years]
    out.write_text(json.dumps(records, indent=2), encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        plan = load_plan(args.plan)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load plan: {exc}", file=sys.stderr)
        return 2

    validation = validate_plan(plan)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Plan is valid.")
        return 0

    try:
        result = run_projection(plan)
    except InvalidInputError as exc:
        print(f"Projection failed: {exc}", file=sys.stderr)
        return 1

    if args.summary:
        _print_summary(result)
    if args.output:
        write_records(args.output, result)
        print(f"Wrote {len(result.years)} years to {Path(args.output)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
