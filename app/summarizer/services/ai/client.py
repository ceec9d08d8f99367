"""
OpenAI client wrapper for sending a PDF and a prompt in one request.
"""

import logging
from pathlib import Path
from typing import Any

from openai import OpenAI

from ...config import ExtractionConfig
from ...exceptions import ConfigurationError
from ..pdf_service import PDFService

logger = logging.getLogger(__name__)


class ModelClient:
    """
    Sends documents to an OpenAI chat model.

    Anything with the same `ensure_credentials()` / `complete(file_path, prompt)`
    pair can stand in for this class in the extractor.
    """

    def __init__(
        self,
        config: ExtractionConfig,
        pdf_service: PDFService | None = None,
        openai_client: Any | None = None,
    ):
        """
        Initialize the model client.

        Args:
            config: Extraction configuration (API key, model, limits, system prompt).
            pdf_service: Service used to encode documents. Defaults to a new PDFService.
            openai_client: Pre-built OpenAI client. If None, one is created lazily.
        """
        self.config = config
        self.pdf_service = pdf_service or PDFService(config.file_size_warning_mb)
        self._client = openai_client

    @property
    def client(self) -> Any:
        """Lazy-load the OpenAI client."""
        if self._client is None:
            if not self.config.api_key:
                raise ConfigurationError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY in the environment or .env file."
                )
            # Retries are handled by the extractor, so the SDK must not retry on its own
            self._client = OpenAI(
                api_key=self.config.api_key,
                timeout=self.config.timeout_seconds,
                max_retries=0,
            )
        return self._client

    def ensure_credentials(self) -> None:
        """Fail with ConfigurationError now rather than on the first document."""
        _ = self.client

    def complete(self, file_path: str | Path, prompt: str) -> Any:
        """
        Send one document and the extraction prompt to the model.

        Args:
            file_path: PDF to attach.
            prompt: Extraction prompt.

        Returns:
            The chat completion returned by the SDK.
        """
        path = Path(file_path)
        data_url = self.pdf_service.encode_data_url(path)

        logger.info("Sending %s to %s", path.name, self.config.model)

        return self.client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": self.config.system_prompt},
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "file",
                            "file": {"filename": path.name, "file_data": data_url},
                        },
                        {"type": "text", "text": prompt},
                    ],
                },
            ],
            response_format={"type": "json_object"},
            temperature=self.config.temperature,
            max_completion_tokens=self.config.max_tokens,
        )
