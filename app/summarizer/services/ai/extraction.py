"""
Single-document metadata extraction with retry and exponential backoff.

Each attempt re-issues the full remote call and yields a tagged outcome
(AttemptSuccess, RetryableFailure or PermanentFailure). The loop stops on
success, on a permanent failure, or when attempts run out; remote failures
are returned in the ExtractionOutcome, never raised.
"""

import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from ...config import ExtractionConfig
from ...exceptions import ConfigurationError
from ...models import (
    AttemptOutcome,
    AttemptSuccess,
    ErrorLogEntry,
    ExtractionOutcome,
    PermanentFailure,
    RetryableFailure,
)
from ..pdf_service import PDFService
from .errors import classify_error, describe_error, is_retryable
from .parsing import parse_response
from .prompt import build_prompt, resolve_fields

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Seconds to wait after a failed attempt (1-based): base * 2^(attempt - 1)."""
    return base_delay * 2 ** (attempt - 1)


def _attempt_extraction(
    path: Path,
    prompt: str,
    fields: list[str],
    attempt: int,
    client: Any,
    config: ExtractionConfig,
) -> AttemptOutcome:
    """Run one remote call and parse its reply."""
    try:
        reply = client.complete(path, prompt)
        parsed = parse_response(reply, fields, config.sentinel)
    except ConfigurationError:
        raise
    except Exception as e:
        category = classify_error(e, config)
        entry = ErrorLogEntry.create(
            filename=path.name,
            error_type=category,
            error_message=describe_error(e),
            attempt_number=attempt,
        )
        if is_retryable(category, config):
            return RetryableFailure(entry=entry)
        return PermanentFailure(entry=entry)

    record = {"filename": path.name, **parsed.record}
    return AttemptSuccess(record=record, warnings=parsed.warnings)


def extract_document(
    file_path: str | Path,
    fields: Iterable[str] | None = None,
    max_attempts: int | None = None,
    *,
    client: Any,
    config: ExtractionConfig,
    pdf_service: PDFService | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ExtractionOutcome:
    """
    Extract metadata from one PDF, retrying transient failures.

    Args:
        file_path: Path to the document.
        fields: Field names to extract. None selects the configured defaults.
        max_attempts: Attempt limit. None uses config.max_attempts.
        client: Remote model (see ModelClient).
        config: Extraction configuration.
        pdf_service: Service for file checks. Defaults to one built from config.
        sleep: Blocking wait used between attempts.

    Returns:
        ExtractionOutcome with the record on success, or the attempt log on failure.

    Raises:
        NotFoundError: If the file does not exist.
        PermissionDeniedError: If the file cannot be read.
        ConfigurationError: If fields, credentials or max_attempts are invalid.
    """
    path = Path(file_path)
    pdf_service = pdf_service or PDFService(config.file_size_warning_mb)

    warnings = pdf_service.validate(path)

    requested = resolve_fields(fields, config)
    prompt = build_prompt(requested, config)
    client.ensure_credentials()

    attempt_limit = config.max_attempts if max_attempts is None else max_attempts
    if attempt_limit < 1:
        raise ConfigurationError(f"max_attempts must be at least 1, got {attempt_limit}")

    logger.info("Processing: %s", path.name)
    error_log: list[ErrorLogEntry] = []

    for attempt in range(1, attempt_limit + 1):
        outcome = _attempt_extraction(path, prompt, requested, attempt, client, config)

        if isinstance(outcome, AttemptSuccess):
            logger.info("Completed: %s (attempt %d/%d)", path.name, attempt, attempt_limit)
            return ExtractionOutcome(
                success=True,
                record=outcome.record,
                error_log=error_log,
                warnings=warnings + outcome.warnings,
                attempts=attempt,
            )

        error_log.append(outcome.entry)

        if isinstance(outcome, RetryableFailure) and attempt < attempt_limit:
            delay = backoff_delay(attempt, config.base_delay_seconds)
            logger.warning(
                "Attempt %d/%d failed for %s (%s: %s). Retrying in %.1f seconds...",
                attempt,
                attempt_limit,
                path.name,
                outcome.entry.error_type.value,
                outcome.entry.error_message,
                delay,
            )
            sleep(delay)
            continue

        if isinstance(outcome, PermanentFailure):
            logger.error(
                "Non-retryable error for %s: %s", path.name, outcome.entry.error_message
            )
        else:
            logger.error(
                "Failed after %d attempts: %s (%s)",
                attempt_limit,
                path.name,
                outcome.entry.error_message,
            )
        return ExtractionOutcome(
            success=False,
            error_log=error_log,
            warnings=warnings,
            attempts=attempt,
        )

    return ExtractionOutcome(
        success=False,
        error_log=error_log,
        warnings=warnings,
        attempts=attempt_limit,
    )
