"""
AI service package for metadata extraction from PDF documents.

This package provides modular AI functionality split into:
- prompt: Prompt construction from the field specification
- parsing: Reply parsing into flat records
- errors: Transient/permanent error classification
- client: OpenAI client wrapper
- extraction: Single-document extraction with retry/backoff

The DocumentExtractor class bundles a configuration, a client and a PDF
service and delegates to these modules.
"""

import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from ...config import ExtractionConfig, get_extraction_config
from ...exceptions import (
    ConfigurationError,
    InvalidInputError,
    MalformedResponseError,
    NotFoundError,
    PermissionDeniedError,
    SummarizerError,
    UnsupportedOutputFormatError,
)
from ...models import ExtractionOutcome
from ..pdf_service import PDFService
from .client import ModelClient
from .errors import classify_error, classify_message, is_retryable
from .extraction import backoff_delay, extract_document
from .parsing import RESPONSE_TEXT_STRATEGIES, normalize_value, parse_response
from .prompt import build_prompt, resolve_fields

logger = logging.getLogger(__name__)

__all__ = [
    "DocumentExtractor",
    "ModelClient",
    "get_document_extractor",
    "build_prompt",
    "resolve_fields",
    "parse_response",
    "normalize_value",
    "classify_error",
    "classify_message",
    "is_retryable",
    "backoff_delay",
    "extract_document",
    "RESPONSE_TEXT_STRATEGIES",
    "SummarizerError",
    "ConfigurationError",
    "InvalidInputError",
    "MalformedResponseError",
    "NotFoundError",
    "PermissionDeniedError",
    "UnsupportedOutputFormatError",
]


class DocumentExtractor:
    """
    Extracts metadata from one PDF at a time.

    Holds the configuration, the remote client and the PDF service so that
    callers only pass the document and the fields they want.
    """

    def __init__(
        self,
        config: ExtractionConfig,
        client: Any | None = None,
        pdf_service: PDFService | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the extractor.

        Args:
            config: Extraction configuration.
            client: Remote model. Defaults to a ModelClient built from config.
            pdf_service: PDF checks/encoding. Defaults to one built from config.
            sleep: Blocking wait used for backoff.
        """
        self.config = config
        self.pdf_service = pdf_service or PDFService(config.file_size_warning_mb)
        self.client = client or ModelClient(config, pdf_service=self.pdf_service)
        self.sleep = sleep

    def ensure_ready(self, fields: Iterable[str] | None = None) -> list[str]:
        """
        Validate fields and credentials before any document is processed.

        Returns:
            The resolved field names.

        Raises:
            ConfigurationError: On unknown fields or missing credentials.
        """
        requested = resolve_fields(fields, self.config)
        build_prompt(requested, self.config)
        self.client.ensure_credentials()
        return requested

    def extract(
        self,
        file_path: str | Path,
        fields: Iterable[str] | None = None,
        max_attempts: int | None = None,
    ) -> ExtractionOutcome:
        """
        Extract metadata from one document.

        Delegates to the extraction module.

        Args:
            file_path: Path to the PDF.
            fields: Field names to extract. None selects the defaults.
            max_attempts: Attempt limit. None uses the configured limit.

        Returns:
            ExtractionOutcome with the record or the failed attempts.
        """
        return extract_document(
            file_path,
            fields,
            max_attempts,
            client=self.client,
            config=self.config,
            pdf_service=self.pdf_service,
            sleep=self.sleep,
        )


# =============================================================================
# Singleton Factory
# =============================================================================

_document_extractor: DocumentExtractor | None = None


def get_document_extractor() -> DocumentExtractor:
    """Get or create the document extractor singleton."""
    global _document_extractor
    if _document_extractor is None:
        _document_extractor = DocumentExtractor(get_extraction_config())
    return _document_extractor
