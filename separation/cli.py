#!/usr/bin/env python3
"""
Command line interface for the separation metrics pipeline.

Usage:
    separation run /path/to/data
    separation run /path/to/data --workers 4 --no-debug
    separation header
    separation validate /path/to/data/result/batch_results.json
    separation info /path/to/data

Subcommands:
    run         Compute metrics for every image in a data directory
    header      Print the metrics CSV header
    validate    Validate config / batch report JSON files
    info        Show information about a data directory
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from separation.io.csv_export import header_line, read_metrics_csv
from separation.processing.batch import BatchProcessor, read_image_list
from separation.processing.image import ImageProcessingError
from separation.utils.config import (
    BIN_AREA,
    NUM_BINS,
    ConfigValidationError,
    get_default_path,
    load_config,
)
from separation.utils.logging import ProcessingTimer, get_logger, setup_logging
from separation.utils.schemas import infer_and_validate


EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_SETUP_ERROR = 2


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="separation",
        description="Separation metrics for stained-cell microscopy images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process every image listed in data/image_list.dat
  separation run data/

  # Four images at a time, only the analyzed render
  separation run data/ --workers 4 --no-debug

  # Stop at the first failing image
  separation run data/ --fail-fast

  # Print the CSV header
  separation header
""",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress most output",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Write logs to file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # === RUN command ===
    run_parser = subparsers.add_parser("run", help="Compute metrics for a data directory")
    run_parser.add_argument(
        "data_dir",
        type=Path,
        nargs="?",
        default=None,
        help=f"Data directory (default: $SEPARATION_DATA_DIR or {get_default_path('data_dir')})",
    )
    run_parser.add_argument("--config", type=Path, help="Config JSON (default: <data_dir>/separation_config.json)")
    run_parser.add_argument("--workers", "-j", type=int, help="Images processed concurrently")
    run_parser.add_argument("--min-area", type=float, help="Minimum net contour area")
    run_parser.add_argument("--no-debug", action="store_true", help="Only write the analyzed render")
    run_parser.add_argument("--no-renders", action="store_true", help="Write no images at all")
    run_parser.add_argument("--fail-fast", action="store_true", help="Abort at the first failing image")
    run_parser.add_argument("--no-progress", action="store_true", help="Hide the progress bar")

    # === HEADER command ===
    header_parser = subparsers.add_parser("header", help="Print the metrics CSV header")
    header_parser.add_argument("--bin-area", type=float, default=BIN_AREA, help=f"Histogram bin width (default: {BIN_AREA})")
    header_parser.add_argument("--num-bins", type=int, default=NUM_BINS, help=f"Histogram bins (default: {NUM_BINS})")

    # === VALIDATE command ===
    validate_parser = subparsers.add_parser("validate", help="Validate JSON files against schemas")
    validate_parser.add_argument("files", type=Path, nargs="+", help="JSON files to validate")
    validate_parser.add_argument("--strict", action="store_true", help="Fail on first validation error")

    # === INFO command ===
    info_parser = subparsers.add_parser("info", help="Show information about a data directory")
    info_parser.add_argument("data_dir", type=Path, help="Data directory")

    return parser


def cmd_run(args: argparse.Namespace) -> int:
    """Execute the run command."""
    logger = get_logger(__name__)

    data_dir = args.data_dir or Path(get_default_path("data_dir"))
    overrides = {"min_contour_area": args.min_area}
    if args.no_debug:
        overrides["debug_images"] = False
    if args.workers is not None:
        overrides["num_workers"] = args.workers

    config = load_config(data_dir, config_path=args.config, **overrides)

    try:
        processor = BatchProcessor(data_dir, config=config, write_renders=not args.no_renders)
    except (FileNotFoundError, ConfigValidationError) as e:
        logger.error(str(e))
        return EXIT_SETUP_ERROR

    try:
        with ProcessingTimer(logger, f"separation run {data_dir}"):
            result = processor.run(
                continue_on_error=not args.fail_fast,
                progress=not (args.no_progress or args.quiet),
            )
    except ImageProcessingError as e:
        logger.error(f"Aborted: {e}")
        return EXIT_FAILURES

    return EXIT_OK if result.all_completed else EXIT_FAILURES


def cmd_header(args: argparse.Namespace) -> int:
    """Execute the header command."""
    print(header_line(args.bin_area, args.num_bins))
    return EXIT_OK


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute the validate command."""
    logger = get_logger(__name__)

    errors = 0
    for file_path in args.files:
        try:
            infer_and_validate(file_path, raise_on_error=True)
            logger.info(f"✓ {file_path}: Valid")
        except (FileNotFoundError, ValueError) as e:
            logger.error(f"✗ {file_path}: {e}")
            errors += 1
            if args.strict:
                return EXIT_FAILURES

    if errors:
        logger.error(f"{errors} file(s) failed validation")
        return EXIT_FAILURES

    logger.info(f"All {len(args.files)} file(s) valid")
    return EXIT_OK


def cmd_info(args: argparse.Namespace) -> int:
    """Execute the info command."""
    data_dir = args.data_dir
    config = load_config(data_dir)

    list_path = data_dir / config["image_list"]
    input_dir = data_dir / config["input_subdir"]
    output_dir = data_dir / config["output_subdir"]
    metrics_path = data_dir / config["metrics_filename"]

    print(f"Directory: {data_dir}")
    try:
        names = read_image_list(list_path)
    except FileNotFoundError:
        print(f"Image list: missing ({list_path.name})")
        return EXIT_SETUP_ERROR

    present = [n for n in names if (input_dir / n).is_file()]
    print(f"Images listed: {len(names)}")
    print(f"Images present: {len(present)}")
    for name in names:
        if name not in present:
            print(f"  missing: {name}")

    if metrics_path.is_file():
        rows = len(read_metrics_csv(metrics_path)) - 1
        print(f"Metrics rows: {max(rows, 0)}")
    else:
        print("Metrics rows: none")

    renders = len(list(output_dir.glob("*"))) if output_dir.is_dir() else 0
    print(f"Output files: {renders}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else "INFO")
    setup_logging(level=level, log_file=args.log_file)

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "header":
        return cmd_header(args)
    elif args.command == "validate":
        return cmd_validate(args)
    elif args.command == "info":
        return cmd_info(args)
    else:
        parser.print_help()
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
