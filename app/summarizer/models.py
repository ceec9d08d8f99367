"""
Pydantic models for the literature summarizer.

Defines the error log, per-attempt and per-document outcomes, batch results
and the request/response shapes of the HTTP API.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, computed_field

# Value stored for any field the model did not return.
NOT_AVAILABLE = "not available"

ERROR_LOG_COLUMNS = [
    "timestamp",
    "filename",
    "error_type",
    "error_message",
    "attempt_number",
]


class ErrorCategory(str, Enum):
    """Classification of a failed attempt."""

    TIMEOUT = "timeout"
    RATE_LIMIT = "rate limit"
    NETWORK = "network"
    SERVER_ERROR = "server error"
    TEMPORARY = "temporary"
    MALFORMED_RESPONSE = "malformed response"
    AUTHENTICATION = "authentication"
    BAD_REQUEST = "bad request"
    NOT_FOUND = "not found"
    PERMISSION_DENIED = "permission denied"
    UNKNOWN = "unknown"


class ErrorLogEntry(BaseModel):
    """
    One failed attempt (or skipped file) in a batch run.

    Attributes:
        timestamp: When the failure was recorded (YYYY-MM-DD HH:MM:SS).
        filename: Basename of the document.
        error_type: Category the failure was classified into.
        error_message: Human-readable cause.
        attempt_number: 1-based attempt the failure belongs to.
    """

    timestamp: str = Field(..., description="Failure time (YYYY-MM-DD HH:MM:SS)")
    filename: str = Field(..., description="Document basename")
    error_type: ErrorCategory = Field(..., description="Failure category")
    error_message: str = Field(..., description="Underlying cause")
    attempt_number: int = Field(..., ge=1, description="1-based attempt number")

    @classmethod
    def create(
        cls,
        filename: str,
        error_type: ErrorCategory,
        error_message: str,
        attempt_number: int = 1,
    ) -> "ErrorLogEntry":
        """Build an entry stamped with the current local time."""
        return cls(
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            filename=filename,
            error_type=error_type,
            error_message=error_message,
            attempt_number=attempt_number,
        )


class ParsedResponse(BaseModel):
    """Flat record decoded from a model reply plus non-fatal warnings."""

    record: dict[str, str]
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# Per-attempt outcomes
# =============================================================================


class AttemptSuccess(BaseModel):
    """The remote call succeeded and the reply was parsed."""

    kind: Literal["success"] = "success"
    record: dict[str, str]
    warnings: list[str] = Field(default_factory=list)


class RetryableFailure(BaseModel):
    """The attempt failed in a way that may succeed if re-issued."""

    kind: Literal["retryable"] = "retryable"
    entry: ErrorLogEntry


class PermanentFailure(BaseModel):
    """The attempt failed in a way that retrying will not fix."""

    kind: Literal["permanent"] = "permanent"
    entry: ErrorLogEntry


AttemptOutcome = AttemptSuccess | RetryableFailure | PermanentFailure


class ExtractionOutcome(BaseModel):
    """
    Result of extracting one document.

    Failure is reported here rather than raised so that a batch can continue.
    """

    success: bool
    record: dict[str, str] | None = None
    error_log: list[ErrorLogEntry] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    attempts: int = Field(default=0, ge=0)


# =============================================================================
# Batch models
# =============================================================================


class ProgressUpdate(BaseModel):
    """Progress notification emitted before each file is processed."""

    index: int = Field(..., ge=1)
    total: int = Field(..., ge=1)
    filename: str
    successful: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)

    @computed_field
    @property
    def percent(self) -> int:
        return round((self.index - 1) / self.total * 100)


class BatchSummary(BaseModel):
    """Counts and timing of one batch run."""

    total_files: int = Field(..., ge=0)
    successful: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    elapsed_seconds: float = Field(..., ge=0.0)

    @computed_field
    @property
    def average_seconds_per_file(self) -> float:
        if not self.total_files:
            return 0.0
        return self.elapsed_seconds / self.total_files


class BatchResult(BaseModel):
    """Everything one batch run produces."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    results: pd.DataFrame
    error_log: list[ErrorLogEntry] = Field(default_factory=list)
    summary: BatchSummary
    report: str = ""


# =============================================================================
# API Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")
    message: str | None = Field(default=None)


class FieldInfo(BaseModel):
    """One extractable metadata field."""

    name: str = Field(..., description="Field name used as a column header")
    description: str = Field(..., description="Instruction given to the model")


class FieldListResponse(BaseModel):
    """Response model for listing the field specification."""

    fields: list[FieldInfo] = Field(default_factory=list)
    default_fields: list[str] = Field(default_factory=list)


class BatchExtractionResponse(BaseModel):
    """Response model for the extract endpoint."""

    columns: list[str] = Field(..., description="filename followed by the requested fields")
    rows: list[dict[str, Any]] = Field(
        default_factory=list,
        description="One row per successfully processed document",
    )
    error_log: list[ErrorLogEntry] = Field(default_factory=list)
    summary: BatchSummary
    report: str = Field(default="", description="Human-readable run summary")
