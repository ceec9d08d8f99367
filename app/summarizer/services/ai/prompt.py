"""
Prompt construction for metadata extraction.

The prompt lists each requested field with its description and asks the
model for a JSON object keyed by exactly those field names.
"""

import logging
from collections.abc import Iterable

from ...config import ExtractionConfig
from ...exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def resolve_fields(
    requested_fields: Iterable[str] | None,
    config: ExtractionConfig,
) -> list[str]:
    """
    Validate requested field names against the field specification.

    Args:
        requested_fields: Field names to extract. None selects the default fields.
        config: Extraction configuration holding the field specification.

    Returns:
        The field names in request order, duplicates removed.

    Raises:
        ConfigurationError: If no fields are requested or any name is unknown.
            Every unknown name is reported, not just the first.
    """
    if requested_fields is None:
        requested_fields = config.default_fields
    if isinstance(requested_fields, str):
        requested_fields = [requested_fields]

    fields = list(dict.fromkeys(requested_fields))
    if not fields:
        raise ConfigurationError("No metadata fields requested")

    invalid = [name for name in fields if name not in config.field_specification]
    if invalid:
        raise ConfigurationError(
            f"Invalid metadata fields requested: {', '.join(invalid)}. "
            f"Available fields: {', '.join(config.field_specification)}",
            invalid_fields=invalid,
        )
    return fields


def build_prompt(
    requested_fields: Iterable[str] | None,
    config: ExtractionConfig,
) -> str:
    """
    Build the extraction prompt for the requested fields.

    Args:
        requested_fields: Field names to extract. None selects the default fields.
        config: Extraction configuration (field specification and template).

    Returns:
        The prompt text with field descriptions and names filled in.

    Raises:
        ConfigurationError: If the request is empty or names unknown fields.
    """
    fields = resolve_fields(requested_fields, config)

    field_descriptions = "\n".join(
        f"- {name}: {config.field_specification[name]}" for name in fields
    )
    field_names = ", ".join(fields)

    # str.replace rather than str.format: descriptions may contain braces
    prompt = config.prompt_template.replace(
        "{field_descriptions}", field_descriptions
    ).replace("{field_names}", field_names)

    logger.debug("Built extraction prompt for fields: %s", fields)
    return prompt
