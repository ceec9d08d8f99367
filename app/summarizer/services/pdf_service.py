"""
PDF file checks and encoding for upload to the model.

Validates that a document exists and is readable before any remote call is
made, and encodes it as a base64 data URL for the chat completions API.
"""

import base64
import logging
import os
from pathlib import Path

from ..exceptions import NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


class PDFService:
    """
    Service for local PDF handling.

    Existence and readability problems raise; a wrong extension, a missing
    PDF header or a large size only produce warnings.
    """

    def __init__(self, size_warning_mb: float = 20.0):
        """
        Initialize the PDF service.

        Args:
            size_warning_mb: Files larger than this produce a warning, since they
                take longer and cost more to process.
        """
        self.size_warning_mb = size_warning_mb

    def validate(self, file_path: str | Path) -> list[str]:
        """
        Check that a document can be sent to the model.

        Args:
            file_path: Path to the document.

        Returns:
            Non-fatal warnings (extension, header, size). Empty if none.

        Raises:
            NotFoundError: If the path does not exist or is not a file.
            PermissionDeniedError: If the file cannot be read.
        """
        path = Path(file_path)

        if not path.exists():
            raise NotFoundError(f"File not found: {path}")
        if not path.is_file():
            raise NotFoundError(f"Not a file: {path}")
        if not os.access(path, os.R_OK):
            raise PermissionDeniedError(f"File is not readable: {path}")

        try:
            with path.open("rb") as f:
                header = f.read(len(PDF_MAGIC))
        except PermissionError as e:
            raise PermissionDeniedError(f"File is not readable: {path}") from e

        warnings: list[str] = []

        if path.suffix.lower() != ".pdf":
            warnings.append(f"File does not have .pdf extension: {path.name}")
        elif header != PDF_MAGIC:
            warnings.append(f"File does not start with a PDF header: {path.name}")

        size_mb = path.stat().st_size / (1024**2)
        if size_mb > self.size_warning_mb:
            warnings.append(
                f"Large file ({size_mb:.1f} MB): {path.name}. "
                "Processing may take longer and cost more."
            )

        for warning in warnings:
            logger.warning(warning)
        return warnings

    def encode_data_url(self, file_path: str | Path) -> str:
        """
        Read a PDF and encode it as a data URL for the chat completions API.

        Args:
            file_path: Path to the PDF.

        Returns:
            "data:application/pdf;base64,..." string.
        """
        pdf_bytes = Path(file_path).read_bytes()
        encoded = base64.b64encode(pdf_bytes).decode("utf-8")
        return f"data:application/pdf;base64,{encoded}"
