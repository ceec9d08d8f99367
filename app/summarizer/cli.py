"""
Command-line entry point for summarizing a set of PDFs.

Usage:
    summarize-literature papers/ extra.pdf --fields title,year,key_findings --format excel
"""

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from .config import Settings, get_settings
from .exceptions import ConfigurationError, InvalidInputError, UnsupportedOutputFormatError
from .services.ai import DocumentExtractor
from .services.batch_service import BatchService
from .services.output_service import save_error_log, save_results

logger = logging.getLogger(__name__)


def collect_paths(inputs: Sequence[str]) -> list[Path]:
    """Expand directories to the PDFs they contain; keep other paths as given."""
    paths: list[Path] = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            paths.extend(sorted(p for p in path.iterdir() if p.suffix.lower() == ".pdf"))
        else:
            paths.append(path)
    return paths


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="summarize-literature",
        description="Extract bibliographic metadata from PDF documents using an OpenAI model",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        help="PDF files or directories containing PDF files",
    )
    parser.add_argument(
        "--fields",
        type=str,
        default=None,
        help='Comma-separated metadata fields to extract (e.g. "title,year,key_findings")',
    )
    parser.add_argument(
        "--list-fields",
        action="store_true",
        help="Print the available metadata fields and exit",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds to wait between documents (default: BATCH_DELAY_SECONDS)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Attempts per document for transient failures (default: MAX_RETRY_ATTEMPTS)",
    )
    parser.add_argument(
        "--format",
        choices=["csv", "excel", "xlsx"],
        default=settings.default_output_format,
        help="Output format for the results table",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=settings.output_dir,
        help="Directory to save results",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=settings.error_log_dir,
        help="Directory to save the error log",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run a batch from the command line. Returns the process exit code."""
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}", file=sys.stderr)
        return 2

    parser = build_parser(settings)
    args = parser.parse_args(argv)
    if args.max_attempts is not None and args.max_attempts < 1:
        parser.error("--max-attempts must be at least 1")
    if args.delay is not None and args.delay < 0:
        parser.error("--delay must not be negative")

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = settings.to_extraction_config()
    if args.max_attempts is not None:
        config = config.model_copy(update={"max_attempts": args.max_attempts})

    if args.list_fields:
        for name, description in config.field_specification.items():
            marker = "*" if name in config.default_fields else " "
            print(f"{marker} {name}: {description}")
        return 0

    fields = None
    if args.fields:
        fields = [name.strip() for name in args.fields.split(",") if name.strip()]

    service = BatchService(DocumentExtractor(config))
    try:
        result = service.process_batch(collect_paths(args.paths), fields, args.delay)
    except (ConfigurationError, InvalidInputError) as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 2

    log_path = save_error_log(result.error_log, log_dir=args.log_dir)
    if log_path is not None:
        print(f"Error log saved to: {log_path}")

    if not result.results.empty:
        try:
            output_path = save_results(
                result.results,
                output_dir=args.output_dir,
                fmt=args.format,
                prefix=settings.output_filename_prefix,
            )
        except UnsupportedOutputFormatError as e:
            logger.error("%s", e)
            print(f"Error: {e}", file=sys.stderr)
            return 2
        print(f"Results saved to: {output_path}")

    print(result.report)
    return 0 if result.summary.successful else 1


if __name__ == "__main__":
    sys.exit(main())
