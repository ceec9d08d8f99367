"""
Services package for the literature summarizer.

Contains:
- pdf_service: File checks and PDF encoding
- ai: Prompting, parsing and single-document extraction with retries
- batch_service: Sequential batch processing with rate limiting
- output_service: CSV/Excel writers for results and error logs
"""

from .ai import DocumentExtractor
from .batch_service import BatchService
from .pdf_service import PDFService

__all__ = ["PDFService", "DocumentExtractor", "BatchService"]
