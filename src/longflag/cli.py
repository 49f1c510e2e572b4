#!/usr/bin/env python3
"""Command-line interface for flagging longitudinal change."""
from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from .config import Settings, load_settings
from .datasets import load_dataset_ex
from .evaluate import evaluate
from .readers import read_table, write_results
from .schema import ID_COLUMN, ChangeMethod, validate_results
from .telemetry import log_run

COMMAND_ALIASES = {"evaluate", "example"}
EXIT_OK = 0
EXIT_FAILURE = 2


@dataclass
class RunOutcome:
    out_path: Path
    rows_processed: int = 0
    method: Optional[str] = None
    threshold: Optional[float] = None
    results: Optional[int] = None
    flagged: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def _configure_evaluate_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--input", required=True, help="Long-format table (CSV, TSV, Parquet or JSON records)")
    parser.add_argument(
        "--format",
        dest="fmt",
        default=None,
        choices=["csv", "tsv", "parquet", "json"],
        help="Input format when it cannot be inferred from the suffix",
    )
    parser.add_argument("--id", dest="subject", required=True, help="Column holding subject identifiers")
    parser.add_argument("--time", required=True, help="Column holding ordered timepoints")
    parser.add_argument("--value", required=True, help="Numeric column to evaluate")
    parser.add_argument(
        "--id-column",
        default=ID_COLUMN,
        help="Name of the subject column in the results",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Absolute change that counts as meaningful (defaults to evaluate.threshold setting)",
    )
    parser.add_argument(
        "--method",
        default=None,
        choices=[member.value for member in ChangeMethod],
        help="How change is measured (defaults to evaluate.method setting)",
    )
    parser.add_argument(
        "--out",
        default=None,
        help="Destination for results. Defaults to <output.dir>/longflag_<method>.csv",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Flag meaningful within-subject change in long-format data")
    subparsers = parser.add_subparsers(dest="command")

    evaluate_parser = subparsers.add_parser(
        "evaluate",
        help="Evaluate change per subject and flag it against a threshold",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    _configure_evaluate_parser(evaluate_parser)
    evaluate_parser.set_defaults(command="evaluate")

    example_parser = subparsers.add_parser(
        "example",
        help="Write the bundled example dataset to CSV",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    example_parser.add_argument("--out", default="dataset_ex.csv", help="Destination CSV path")
    example_parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    example_parser.set_defaults(command="example")

    return parser


def parse_args(args: Optional[list[str]] = None) -> argparse.Namespace:
    if args is None:
        args = sys.argv[1:]
    parser = build_parser()
    if args and args[0] in {"-h", "--help"}:
        return parser.parse_args(args=args)
    if not args or args[0] not in COMMAND_ALIASES:
        args = ["evaluate", *args]
    return parser.parse_args(args=args)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def summarise_results(results: pd.DataFrame, id_column: str, method: ChangeMethod) -> dict:
    flagged = results["flagged"]
    summary = {
        "method": method.value,
        "results": len(results),
        "subjects": int(results[id_column].nunique()),
        "flagged": int(flagged.sum()),
        "undefined": int(flagged.isna().sum()),
    }
    logging.info(
        "%s: %d result rows across %d subjects, %d flagged",
        summary["method"],
        summary["results"],
        summary["subjects"],
        summary["flagged"],
    )
    if summary["undefined"]:
        logging.warning("%d result rows have an undefined change", summary["undefined"])
    return summary


def run_evaluate(args: argparse.Namespace, settings: Settings) -> RunOutcome:
    threshold = args.threshold if args.threshold is not None else settings.threshold
    method = ChangeMethod.parse(args.method or settings.method)
    table = read_table(args.input, fmt=args.fmt)
    if table.empty:
        logging.warning("No rows detected in input %s", args.input)

    results = evaluate(
        table,
        subject_field=args.subject,
        time_field=args.time,
        value_field=args.value,
        threshold=threshold,
        method=method,
        id_column=args.id_column,
    )
    validate_results(results, method, args.id_column)
    summary = summarise_results(results, args.id_column, method)

    out_path = Path(args.out) if args.out else settings.output_dir / f"longflag_{method.value}.csv"
    write_results(results, out_path)
    return RunOutcome(
        out_path=out_path,
        rows_processed=len(table),
        method=method.value,
        threshold=threshold,
        results=summary["results"],
        flagged=summary["flagged"],
        metadata={"input": args.input, "output": str(out_path), "subjects": summary["subjects"]},
    )


def run_example(args: argparse.Namespace, settings: Settings) -> RunOutcome:
    dataset = load_dataset_ex()
    out_path = write_results(dataset, Path(args.out))
    return RunOutcome(out_path=out_path, rows_processed=len(dataset), metadata={"output": str(out_path)})


RUNNERS = {"evaluate": run_evaluate, "example": run_example}


def main(args: Optional[list[str]] = None) -> int:
    namespace = parse_args(args=args)
    configure_logging(namespace.verbose)
    settings = load_settings()
    start = time.time()
    runner = RUNNERS[namespace.command]
    try:
        outcome = runner(namespace, settings)
    except (ValueError, OSError) as exc:
        logging.error("%s failed: %s", namespace.command, exc)
        if settings.telemetry_enabled:
            log_run(
                namespace.command,
                start_time=start,
                status="error",
                method=getattr(namespace, "method", None),
                threshold=getattr(namespace, "threshold", None),
                error=str(exc),
                metadata={"error_type": type(exc).__name__},
                output_dir=settings.telemetry_dir,
            )
        return EXIT_FAILURE

    logging.info("Results written to %s", outcome.out_path)
    if settings.telemetry_enabled:
        log_run(
            namespace.command,
            start_time=start,
            method=outcome.method,
            threshold=outcome.threshold,
            rows_processed=outcome.rows_processed,
            results=outcome.results,
            flagged=outcome.flagged,
            metadata=outcome.metadata,
            output_dir=settings.telemetry_dir,
        )
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
