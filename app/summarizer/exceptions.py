"""
Exceptions raised by the summarizer.
"""


class SummarizerError(Exception):
    """Base class for errors raised by the summarizer."""

    pass


class ConfigurationError(SummarizerError):
    """Raised when fields, credentials or settings are invalid. Aborts before any remote call."""

    def __init__(self, message: str, invalid_fields: list[str] | None = None):
        super().__init__(message)
        self.invalid_fields = invalid_fields or []


class InvalidInputError(SummarizerError):
    """Raised when a batch is started without any input files."""

    pass


class NotFoundError(SummarizerError, FileNotFoundError):
    """Raised when a document does not exist."""

    pass


class PermissionDeniedError(SummarizerError, PermissionError):
    """Raised when a document exists but cannot be read."""

    pass


class MalformedResponseError(SummarizerError):
    """Raised when a model reply cannot be decoded into a JSON object."""

    def __init__(self, message: str, raw_text: str | None = None):
        super().__init__(message)
        self.raw_text = raw_text


class UnsupportedOutputFormatError(SummarizerError):
    """Raised when results are requested in a format no writer exists for."""

    pass
