"""Tests for result and error log writers."""

import pandas as pd
import pytest

from app.summarizer.exceptions import UnsupportedOutputFormatError
from app.summarizer.models import ERROR_LOG_COLUMNS, ErrorCategory, ErrorLogEntry
from app.summarizer.services.output_service import (
    error_log_to_frame,
    save_error_log,
    save_results,
)


@pytest.fixture
def results() -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"filename": "a.pdf", "title": "First", "year": "2020"},
            {"filename": "b.pdf", "title": "Second", "year": "not available"},
        ],
        columns=["filename", "title", "year"],
    )


@pytest.fixture
def error_log() -> list[ErrorLogEntry]:
    return [
        ErrorLogEntry.create("a.pdf", ErrorCategory.RATE_LIMIT, "Rate limit reached", 1),
        ErrorLogEntry.create("c.pdf", ErrorCategory.NOT_FOUND, "File not found: c.pdf", 1),
    ]


class TestSaveErrorLog:
    """Tests for save_error_log."""

    def test_writes_timestamped_csv(self, tmp_path, error_log):
        path = save_error_log(error_log, log_dir=tmp_path / "logs", timestamp="20240101_120000")

        assert path == tmp_path / "logs" / "error_log_20240101_120000.csv"
        frame = pd.read_csv(path)
        assert list(frame.columns) == ERROR_LOG_COLUMNS
        assert list(frame["filename"]) == ["a.pdf", "c.pdf"]
        assert list(frame["error_type"]) == ["rate limit", "not found"]

    def test_empty_log_writes_nothing(self, tmp_path):
        assert save_error_log([], log_dir=tmp_path / "logs") is None
        assert not (tmp_path / "logs").exists()

    def test_frame_columns_for_empty_log(self):
        assert list(error_log_to_frame([]).columns) == ERROR_LOG_COLUMNS


class TestSaveResults:
    """Tests for save_results."""

    def test_csv(self, tmp_path, results):
        path = save_results(results, output_dir=tmp_path, fmt="csv", timestamp="20240101_120000")

        assert path.name == "lit_review_results_20240101_120000.csv"
        written = pd.read_csv(path, dtype=str)
        assert list(written.columns) == ["filename", "title", "year"]
        assert list(written["year"]) == ["2020", "not available"]

    def test_excel(self, tmp_path, results):
        path = save_results(results, output_dir=tmp_path, fmt="excel", prefix="review")

        assert path.suffix == ".xlsx"
        assert path.name.startswith("review_")
        written = pd.read_excel(path, sheet_name="Results", dtype=str)
        assert list(written["title"]) == ["First", "Second"]

    def test_creates_output_dir(self, tmp_path, results):
        target = tmp_path / "nested" / "outputs"
        path = save_results(results, output_dir=target)
        assert path.parent == target

    def test_unknown_format_raises(self, tmp_path, results):
        with pytest.raises(UnsupportedOutputFormatError):
            save_results(results, output_dir=tmp_path, fmt="parquet")
