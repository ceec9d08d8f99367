"""
Batch processing of many PDFs with progress tracking and rate limiting.

Files are processed one at a time. Individual failures are recorded in the
error log and counted; they never stop the batch.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import pandas as pd

from ..exceptions import InvalidInputError, NotFoundError, PermissionDeniedError
from ..models import (
    BatchResult,
    BatchSummary,
    ErrorCategory,
    ErrorLogEntry,
    ExtractionOutcome,
    ProgressUpdate,
)
from .ai import DocumentExtractor, get_document_extractor

logger = logging.getLogger(__name__)

RULE = "=" * 70


# =============================================================================
# Reporting Helpers
# =============================================================================


def display_progress(update: ProgressUpdate) -> None:
    """Log the progress line shown before each file."""
    logger.info(
        "Progress: %d/%d (%d%%) | %d successful | %d failed",
        update.index,
        update.total,
        update.percent,
        update.successful,
        update.failed,
    )
    logger.info("Processing: %s", update.filename)


def generate_error_summary(
    error_log: Sequence[ErrorLogEntry],
    failed_files: Iterable[str] | None = None,
) -> str:
    """
    Summarize the error log per file.

    Args:
        error_log: All entries of a batch run.
        failed_files: If given, only these filenames are listed (files that
            failed once and then succeeded are left out).

    Returns:
        One line per file with its attempt count and last error message.
    """
    if not error_log:
        return "No errors encountered."

    wanted = set(failed_files) if failed_files is not None else None
    by_file: dict[str, list[ErrorLogEntry]] = {}
    for entry in error_log:
        by_file.setdefault(entry.filename, []).append(entry)

    lines = [f"Error Summary ({len(error_log)} total errors):", "Failed files:"]
    for filename, entries in by_file.items():
        if wanted is not None and filename not in wanted:
            continue
        count = len(entries)
        lines.append(
            f"  - {filename} ({count} attempt{'s' if count != 1 else ''}): "
            f"{entries[-1].error_message}"
        )
    return "\n".join(lines)


def format_report(
    summary: BatchSummary,
    error_log: Sequence[ErrorLogEntry],
    failed_files: Iterable[str] = (),
) -> str:
    """Build the human-readable summary printed at the end of a batch."""
    lines = [
        RULE,
        "Batch Processing Complete!",
        RULE,
        f"Successful: {summary.successful}/{summary.total_files}",
        f"Failed: {summary.failed}/{summary.total_files}",
        f"Total time: {summary.elapsed_seconds:.1f} seconds",
        f"Average time per file: {summary.average_seconds_per_file:.1f} seconds",
    ]
    if summary.failed:
        lines.append(generate_error_summary(error_log, failed_files))
    lines.append(RULE)
    return "\n".join(lines)


def build_results_table(records: Sequence[dict[str, str]], fields: Sequence[str]) -> pd.DataFrame:
    """Combine records into one table with columns filename + fields, even when empty."""
    columns = ["filename", *fields]
    return pd.DataFrame.from_records(list(records), columns=columns)


# =============================================================================
# Batch Service
# =============================================================================


class BatchService:
    """
    Runs a DocumentExtractor over a list of files.

    One remote call is in flight at a time; the service sleeps between files
    to stay under the API rate limit. Batches submitted from several threads
    (concurrent HTTP requests) run one after another.
    """

    def __init__(
        self,
        extractor: DocumentExtractor,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """
        Initialize the batch service.

        Args:
            extractor: Single-document extractor.
            sleep: Blocking wait used between files.
            clock: Monotonic clock used to time the run.
        """
        self.extractor = extractor
        self.sleep = sleep
        self.clock = clock
        self._lock = threading.Lock()
        self._last_finished: float | None = None

    def _extract_one(self, path: Path, fields: list[str]) -> ExtractionOutcome:
        """Run the extractor, turning precondition errors into a single log entry."""
        try:
            return self.extractor.extract(path, fields)
        except (NotFoundError, PermissionDeniedError) as e:
            category = (
                ErrorCategory.NOT_FOUND
                if isinstance(e, NotFoundError)
                else ErrorCategory.PERMISSION_DENIED
            )
            logger.error("Skipping %s: %s", path.name, e)
            return ExtractionOutcome(
                success=False,
                error_log=[ErrorLogEntry.create(path.name, category, str(e), 1)],
            )

    def process_batch(
        self,
        file_paths: Sequence[str | Path],
        fields: Iterable[str] | None = None,
        delay_seconds: float | None = None,
        on_progress: Callable[[ProgressUpdate], None] | None = None,
    ) -> BatchResult:
        """
        Extract metadata from every file in order.

        Args:
            file_paths: Documents to process.
            fields: Field names to extract. None selects the defaults.
            delay_seconds: Pause between files. None uses the configured delay.
            on_progress: Called with a ProgressUpdate before each file.

        Returns:
            BatchResult with the results table, the error log, the summary
            and the printed report.

        Raises:
            InvalidInputError: If file_paths is empty or the delay is negative.
            ConfigurationError: If fields or credentials are invalid.
        """
        paths = [Path(p) for p in file_paths]
        if not paths:
            raise InvalidInputError("No PDF files provided for processing")

        delay = self.extractor.config.base_delay_seconds if delay_seconds is None else delay_seconds
        if delay < 0:
            raise InvalidInputError(f"delay_seconds must not be negative, got {delay}")

        requested = self.extractor.ensure_ready(fields)

        if self._lock.locked():
            logger.info("Another batch is running; waiting for it to finish")
        with self._lock:
            return self._run_batch(paths, requested, delay, on_progress)

    def _run_batch(
        self,
        paths: list[Path],
        requested: list[str],
        delay: float,
        on_progress: Callable[[ProgressUpdate], None] | None,
    ) -> BatchResult:
        """Process validated inputs sequentially. Called with the batch lock held."""
        total = len(paths)
        records: list[dict[str, str]] = []
        error_log: list[ErrorLogEntry] = []
        failed_files: list[str] = []
        successful = 0
        failed = 0

        # The inter-file delay also separates consecutive batches
        if self._last_finished is not None:
            remaining = delay - (self.clock() - self._last_finished)
            if remaining > 0:
                logger.info("Waiting %.1f seconds after the previous batch", remaining)
                self.sleep(remaining)

        start = self.clock()

        logger.info(RULE)
        logger.info("Starting batch processing of %d PDF files", total)
        logger.info(RULE)

        for index, path in enumerate(paths, start=1):
            filename = path.name
            update = ProgressUpdate(
                index=index,
                total=total,
                filename=filename,
                successful=successful,
                failed=failed,
            )
            display_progress(update)
            if on_progress is not None:
                on_progress(update)

            # Missing files are skipped without calling the extractor or waiting
            if not path.exists():
                logger.error("File not found, skipping: %s", filename)
                failed += 1
                failed_files.append(filename)
                error_log.append(
                    ErrorLogEntry.create(filename, ErrorCategory.NOT_FOUND, f"File not found: {path}", 1)
                )
                continue

            outcome = self._extract_one(path, requested)
            if outcome.success and outcome.record is not None:
                records.append(outcome.record)
                successful += 1
            else:
                failed += 1
                failed_files.append(filename)
            error_log.extend(outcome.error_log)

            if index < total and outcome.attempts > 0:
                self.sleep(delay)

        finished = self.clock()
        self._last_finished = finished
        summary = BatchSummary(
            total_files=total,
            successful=successful,
            failed=failed,
            elapsed_seconds=max(finished - start, 0.0),
        )
        report = format_report(summary, error_log, failed_files)
        for line in report.splitlines():
            logger.info(line)

        return BatchResult(
            results=build_results_table(records, requested),
            error_log=error_log,
            summary=summary,
            report=report,
        )


# Singleton instance for convenience
_batch_service: BatchService | None = None


def get_batch_service() -> BatchService:
    """Get or create the batch service singleton."""
    global _batch_service
    if _batch_service is None:
        _batch_service = BatchService(get_document_extractor())
    return _batch_service
