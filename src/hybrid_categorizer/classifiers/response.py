"""Parsing of chat-completion replies.

Models are asked for a JSON array but drift: some wrap the array in an
object, some rename fields, some fence the JSON in markdown. Anything that
still yields a list of objects is accepted; individual malformed items are
skipped so the caller can fill them with heuristics.
"""

import json
import re
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from hybrid_categorizer.logger import get_logger
from hybrid_categorizer.models import clamp_confidence

logger = get_logger(__name__)

DEFAULT_REPLY_CONFIDENCE = 0.5
WRAPPER_KEYS = ("results", "items", "transactions", "data")

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class ResponseFormatError(ValueError):
    """Raised when a reply holds no usable JSON array."""


class _ReplyItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "i", "transaction_id"))
    confidence: float = Field(
        default=DEFAULT_REPLY_CONFIDENCE,
        validation_alias=AliasChoices("confidence", "conf"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            return clamp_confidence(value)
        except (TypeError, ValueError):
            return DEFAULT_REPLY_CONFIDENCE


class SimplifyReply(_ReplyItem):
    simplified: str = Field(
        validation_alias=AliasChoices("simplified", "merchant", "label", "name")
    )


class CategoryReply(_ReplyItem):
    category: str = Field(validation_alias=AliasChoices("category", "cat", "c"))


def extract_reply_items(content: str) -> list[Any]:
    """Return the list of reply objects, unwrapping the accepted envelope keys."""
    text = _CODE_FENCE.sub("", content.strip())
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ResponseFormatError(f"reply is not valid JSON: {exc}") from exc

    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in WRAPPER_KEYS:
            if isinstance(parsed.get(key), list):
                return parsed[key]
    raise ResponseFormatError(f"reply holds no array (got {type(parsed).__name__})")


def _parse(content: str, model: type[_ReplyItem]) -> dict[str, Any]:
    replies: dict[str, Any] = {}
    for raw in extract_reply_items(content):
        if not isinstance(raw, dict):
            continue
        try:
            item = model.model_validate(raw)
        except ValidationError as exc:
            logger.debug(f"Skipping malformed reply item: {exc.error_count()} error(s)")
            continue
        replies.setdefault(item.id, item)
    return replies


def parse_simplify_reply(content: str) -> dict[str, SimplifyReply]:
    return _parse(content, SimplifyReply)


def parse_category_reply(content: str) -> dict[str, CategoryReply]:
    return _parse(content, CategoryReply)
