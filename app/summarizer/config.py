"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files. The loaded
Settings are turned once into a frozen ExtractionConfig which is passed
explicitly to every service.
"""

import logging
from collections.abc import Mapping
from functools import lru_cache
from types import MappingProxyType
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import NOT_AVAILABLE, ErrorCategory

logger = logging.getLogger(__name__)


# =============================================================================
# Metadata Field Definitions
# =============================================================================

METADATA_FIELDS: Mapping[str, str] = MappingProxyType(
    {
        "title": "The full title of the document",
        "author": "Primary author(s) of the document",
        "organization": "Organization that published or sponsored the document",
        "year": "Publication year",
        "state": "U.S. state(s) mentioned or relevant to the research (if applicable)",
        "key_findings": "A 2-3 sentence summary of the main findings or conclusions",
    }
)

DEFAULT_FIELDS: tuple[str, ...] = tuple(METADATA_FIELDS)


# =============================================================================
# Prompts
# =============================================================================

SYSTEM_PROMPT = (
    "You are a research assistant specializing in extracting metadata from "
    "academic and policy documents. Extract the requested information accurately "
    "and concisely. If a value cannot be found in the document, return null for it."
)

EXTRACTION_PROMPT_TEMPLATE = """Extract the following metadata from the attached document:
{field_descriptions}

Provide your response as a valid JSON object with these exact keys: {field_names}
Do not add any other keys. Use null for anything the document does not mention."""


# Substrings searched for in lower-cased error messages when the error carries
# no structured type or status code. Checked in order; first match wins.
DEFAULT_RETRYABLE_PATTERNS: Mapping[ErrorCategory, tuple[str, ...]] = MappingProxyType(
    {
        ErrorCategory.TIMEOUT: ("timeout", "timed out"),
        ErrorCategory.RATE_LIMIT: ("rate limit", "429"),
        ErrorCategory.NETWORK: ("network", "connection"),
        ErrorCategory.SERVER_ERROR: ("502", "503"),
        ErrorCategory.TEMPORARY: ("temporary",),
    }
)


class ExtractionConfig(BaseModel):
    """
    Immutable configuration shared by every extraction component.

    Built once at startup (see Settings.to_extraction_config) and threaded
    through the prompt builder, parser, extractor and batch orchestrator.
    """

    model_config = ConfigDict(frozen=True)

    field_specification: Mapping[str, str] = Field(default_factory=lambda: METADATA_FIELDS)
    default_fields: tuple[str, ...] = DEFAULT_FIELDS
    api_key: str | None = None
    model: str = "gpt-4o-mini"
    system_prompt: str = SYSTEM_PROMPT
    prompt_template: str = EXTRACTION_PROMPT_TEMPLATE
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1500, ge=1)
    timeout_seconds: float = Field(default=60.0, gt=0.0)
    max_attempts: int = Field(default=3, ge=1)
    base_delay_seconds: float = Field(default=2.0, ge=0.0)
    file_size_warning_mb: float = Field(default=20.0, gt=0.0)
    retry_malformed_responses: bool = True
    retryable_patterns: Mapping[ErrorCategory, tuple[str, ...]] = Field(
        default_factory=lambda: DEFAULT_RETRYABLE_PATTERNS
    )
    sentinel: str = NOT_AVAILABLE

    @field_validator("field_specification", "retryable_patterns")
    @classmethod
    def freeze_mapping(cls, v: Mapping) -> Mapping:
        """Store lookup tables as read-only views."""
        return MappingProxyType(dict(v))


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    api_temperature: float = 0.3
    api_max_tokens: int = 1500
    api_timeout_seconds: float = 60.0

    # Retry and rate limiting
    max_retry_attempts: int = 3
    batch_delay_seconds: float = 2.0
    retry_malformed_responses: bool = True
    retryable_patterns: dict[ErrorCategory, list[str]] | None = None

    # Input checks
    file_size_warning_mb: float = 20.0

    # Output
    error_log_dir: str = "logs"
    output_dir: str = "outputs"
    output_filename_prefix: str = "lit_review_results"
    default_output_format: Literal["csv", "excel", "xlsx"] = "csv"

    # Debug flags
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env in the working directory
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )

    @field_validator("openai_api_key")
    @classmethod
    def warn_on_unusual_key(cls, v: str | None) -> str | None:
        """Blank keys count as missing; keys not shaped like OpenAI keys only warn."""
        if v is not None and not v.strip():
            return None
        if v and not v.startswith("sk-"):
            logger.warning("API key format looks unusual. OpenAI keys typically start with 'sk-'")
        return v

    @field_validator("default_output_format", mode="before")
    @classmethod
    def normalize_output_format(cls, v: object) -> object:
        """Accept CSV/Excel in any case; anything else fails at startup."""
        return v.strip().lower() if isinstance(v, str) else v

    def to_extraction_config(self) -> ExtractionConfig:
        """Freeze these settings into the configuration used by the services."""
        # Overrides replace the substrings of the categories they name; other
        # categories keep their defaults.
        patterns = dict(DEFAULT_RETRYABLE_PATTERNS)
        for category, substrings in (self.retryable_patterns or {}).items():
            patterns[category] = tuple(p.lower() for p in substrings)
        return ExtractionConfig(
            api_key=self.openai_api_key,
            model=self.openai_model,
            temperature=self.api_temperature,
            max_tokens=self.api_max_tokens,
            timeout_seconds=self.api_timeout_seconds,
            max_attempts=self.max_retry_attempts,
            base_delay_seconds=self.batch_delay_seconds,
            file_size_warning_mb=self.file_size_warning_mb,
            retry_malformed_responses=self.retry_malformed_responses,
            retryable_patterns=patterns,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()


@lru_cache
def get_extraction_config() -> ExtractionConfig:
    """Get the extraction configuration derived from the cached settings."""
    return get_settings().to_extraction_config()
