"""
Writers for batch output: the results table and the error log.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import pandas as pd

from ..exceptions import UnsupportedOutputFormatError
from ..models import ERROR_LOG_COLUMNS, ErrorLogEntry

logger = logging.getLogger(__name__)

OUTPUT_EXTENSIONS = {"csv": ".csv", "excel": ".xlsx", "xlsx": ".xlsx"}


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def error_log_to_frame(error_log: Sequence[ErrorLogEntry]) -> pd.DataFrame:
    """Tabulate error log entries with a fixed column order."""
    rows = [entry.model_dump(mode="json") for entry in error_log]
    return pd.DataFrame.from_records(rows, columns=ERROR_LOG_COLUMNS)


def save_error_log(
    error_log: Sequence[ErrorLogEntry],
    log_dir: str | Path = "logs",
    timestamp: str | None = None,
) -> Path | None:
    """
    Write the error log of one batch run to a timestamped CSV file.

    Args:
        error_log: Entries collected by the batch.
        log_dir: Directory for log files (created if missing).
        timestamp: Filename timestamp. Defaults to now (YYYYmmdd_HHMMSS).

    Returns:
        Path of the written file, or None if there was nothing to log.
    """
    if not error_log:
        logger.info("No errors to log")
        return None

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    output_path = directory / f"error_log_{timestamp or _timestamp()}.csv"

    error_log_to_frame(error_log).to_csv(output_path, index=False)
    logger.info("Error log saved to: %s", output_path)
    return output_path


def save_results(
    results: pd.DataFrame,
    output_dir: str | Path = "outputs",
    fmt: str = "csv",
    prefix: str = "lit_review_results",
    timestamp: str | None = None,
) -> Path:
    """
    Write the results table as CSV or Excel.

    Args:
        results: Table produced by a batch run.
        output_dir: Directory for result files (created if missing).
        fmt: "csv" or "excel" (alias "xlsx").
        prefix: Filename prefix.
        timestamp: Filename timestamp. Defaults to now (YYYYmmdd_HHMMSS).

    Returns:
        Path of the written file.

    Raises:
        UnsupportedOutputFormatError: If fmt is not a known format.
    """
    fmt = fmt.lower()
    if fmt not in OUTPUT_EXTENSIONS:
        raise UnsupportedOutputFormatError(
            f"Unsupported output format '{fmt}'. Use one of: csv, excel"
        )

    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    output_path = directory / f"{prefix}_{timestamp or _timestamp()}{OUTPUT_EXTENSIONS[fmt]}"

    if fmt == "csv":
        results.to_csv(output_path, index=False)
    else:
        with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
            results.to_excel(writer, sheet_name="Results", index=False)

    logger.info("Written %d records to %s", len(results), output_path)
    return output_path
