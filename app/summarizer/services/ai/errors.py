"""
Classification of remote-call failures into transient and permanent errors.

Structured information (OpenAI SDK exception types and HTTP status codes) is
used first. Only errors that carry none fall back to substring matching on
the lower-cased message, using the configured pattern table. Message matching
can misclassify, so the patterns live in configuration rather than code.
"""

import logging
from collections.abc import Mapping, Sequence

import openai

from ...config import ExtractionConfig
from ...exceptions import MalformedResponseError
from ...models import ErrorCategory

logger = logging.getLogger(__name__)

TRANSIENT_CATEGORIES = frozenset(
    {
        ErrorCategory.TIMEOUT,
        ErrorCategory.RATE_LIMIT,
        ErrorCategory.NETWORK,
        ErrorCategory.SERVER_ERROR,
        ErrorCategory.TEMPORARY,
    }
)


def _classify_status_code(status_code: int) -> ErrorCategory:
    if status_code == 429:
        return ErrorCategory.RATE_LIMIT
    if status_code == 408:
        return ErrorCategory.TIMEOUT
    if status_code >= 500:
        return ErrorCategory.SERVER_ERROR
    if status_code in (401, 403):
        return ErrorCategory.AUTHENTICATION
    return ErrorCategory.BAD_REQUEST


def _classify_structured(exc: BaseException) -> ErrorCategory | None:
    """Classify from exception type or status code; None if neither is informative."""
    if isinstance(exc, MalformedResponseError):
        return ErrorCategory.MALFORMED_RESPONSE
    # APITimeoutError subclasses APIConnectionError, so it is checked first
    if isinstance(exc, (openai.APITimeoutError, TimeoutError)):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, (openai.APIConnectionError, ConnectionError)):
        return ErrorCategory.NETWORK
    if isinstance(exc, openai.APIStatusError):
        return _classify_status_code(exc.status_code)
    return None


def classify_message(
    message: str,
    patterns: Mapping[ErrorCategory, Sequence[str]],
) -> ErrorCategory:
    """Match a message against the pattern table; first category with a hit wins."""
    lowered = message.lower()
    for category, substrings in patterns.items():
        if any(substring in lowered for substring in substrings):
            return category
    return ErrorCategory.UNKNOWN


def classify_error(exc: BaseException, config: ExtractionConfig) -> ErrorCategory:
    """
    Classify a failed attempt.

    Args:
        exc: The exception raised by the remote call or the parser.
        config: Extraction configuration holding the fallback patterns.

    Returns:
        The ErrorCategory for the failure.
    """
    category = _classify_structured(exc)
    if category is None:
        category = classify_message(describe_error(exc), config.retryable_patterns)
        logger.debug("Classified %s by message pattern as '%s'", type(exc).__name__, category.value)
    return category


def is_retryable(category: ErrorCategory, config: ExtractionConfig) -> bool:
    """Whether a failure of this category is worth re-issuing."""
    if category == ErrorCategory.MALFORMED_RESPONSE:
        return config.retry_malformed_responses
    return category in TRANSIENT_CATEGORIES


def describe_error(exc: BaseException) -> str:
    """Human-readable message for an exception, falling back to its type name."""
    message = str(exc).strip()
    return message or type(exc).__name__
