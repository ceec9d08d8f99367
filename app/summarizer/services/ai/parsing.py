"""
Parsing of model replies into flat, single-row records.

Replies arrive in different envelopes depending on which client produced
them. The JSON text is located by trying RESPONSE_TEXT_STRATEGIES in order,
decoded, reconciled against the requested fields and flattened to strings so
every record exports to the same tabular shape.
"""

import json
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ...exceptions import MalformedResponseError
from ...models import NOT_AVAILABLE, ParsedResponse

logger = logging.getLogger(__name__)

LIST_SEPARATOR = "; "

_CODE_FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


# =============================================================================
# Response Text Strategies
# =============================================================================


def _lookup(container: Any, key: str) -> Any:
    """Read a key from a mapping or an attribute from an SDK object."""
    if isinstance(container, Mapping):
        return container.get(key)
    return getattr(container, key, None)


def _text_from_string(reply: Any) -> str | None:
    """The reply is already the JSON text."""
    return reply if isinstance(reply, str) else None


def _text_from_content(reply: Any) -> str | None:
    """The reply carries the text under `content`."""
    content = _lookup(reply, "content")
    return content if isinstance(content, str) else None


def _text_from_chat_choices(reply: Any) -> str | None:
    """OpenAI chat completion shape: choices[0].message.content."""
    choices = _lookup(reply, "choices")
    if not choices or isinstance(choices, (str, Mapping)):
        return None
    try:
        first = choices[0]
    except (IndexError, KeyError, TypeError):
        return None
    content = _lookup(_lookup(first, "message"), "content")
    return content if isinstance(content, str) else None


RESPONSE_TEXT_STRATEGIES: list[Callable[[Any], str | None]] = [
    _text_from_string,
    _text_from_content,
    _text_from_chat_choices,
]


def extract_response_text(raw_reply: Any) -> str:
    """
    Locate the JSON text inside a model reply.

    Raises:
        MalformedResponseError: If no strategy finds any text.
    """
    for strategy in RESPONSE_TEXT_STRATEGIES:
        text = strategy(raw_reply)
        if text is not None:
            return text
    raise MalformedResponseError(
        f"Could not extract content from API response of type {type(raw_reply).__name__}",
        raw_text=repr(raw_reply)[:2000],
    )


# =============================================================================
# Value Normalization
# =============================================================================


def _flatten(value: Any) -> Iterable[Any]:
    """Yield the scalar leaves of nested lists and objects."""
    if isinstance(value, Mapping):
        for item in value.values():
            yield from _flatten(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _flatten(item)
    else:
        yield value


def normalize_value(value: Any, sentinel: str = NOT_AVAILABLE) -> str:
    """
    Coerce one decoded JSON value to the string stored in the table.

    null becomes the sentinel, lists (and objects) are flattened and joined
    with "; ", anything else is stringified as-is.
    """
    if value is None:
        return sentinel
    if isinstance(value, (list, tuple, Mapping)):
        items = [str(item) for item in _flatten(value) if item is not None]
        # An empty list (or one holding only nulls) is stored as the sentinel, not "".
        return LIST_SEPARATOR.join(items) if items else sentinel
    return str(value)


# =============================================================================
# Main Parse Function
# =============================================================================


def parse_response(
    raw_reply: Any,
    requested_fields: Iterable[str],
    sentinel: str = NOT_AVAILABLE,
) -> ParsedResponse:
    """
    Turn a model reply into a flat record over the requested fields.

    Args:
        raw_reply: Reply text, or an envelope holding it (see RESPONSE_TEXT_STRATEGIES).
        requested_fields: Field names the record must contain, in column order.
        sentinel: Value used for missing or null fields.

    Returns:
        ParsedResponse with one string per requested field and any warnings
        about fields the reply left out.

    Raises:
        MalformedResponseError: If the text cannot be found or is not a JSON object.
    """
    fields = list(requested_fields)
    content = extract_response_text(raw_reply)

    fenced = _CODE_FENCE_PATTERN.match(content)
    text = fenced.group(1) if fenced else content

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse JSON response: %s", content[:500])
        raise MalformedResponseError(
            f"Failed to parse JSON response: {e}", raw_text=content
        ) from e

    if not isinstance(parsed, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(parsed).__name__}", raw_text=content
        )

    warnings: list[str] = []
    missing = [name for name in fields if name not in parsed]
    if missing:
        message = f"Missing fields in API response: {', '.join(missing)}"
        logger.warning(message)
        warnings.append(message)

    record = {name: normalize_value(parsed.get(name), sentinel) for name in fields}
    return ParsedResponse(record=record, warnings=warnings)
