import re

from hybrid_categorizer.domain.sanitize import MASK_TOKENS

MAX_LABEL_LENGTH = 50
DEFAULT_LABEL = "Transaction"

_LEADING_PREFIX = re.compile(r"^(?:COMPRA|PAGO|PAYMENT|PURCHASE|RECIBO|CARGO)\s+", re.IGNORECASE)
_LEADING_CONNECTOR = re.compile(r"^(?:EN|IN|AT|DE|A)\s+", re.IGNORECASE)
_LEADING_URL = re.compile(r"^(?:WWW\.|HTTPS?://)", re.IGNORECASE)
_TOKEN_SPLIT = re.compile(r"[\s\-_/\\*]+")

_PAYMENT_NOISE = frozenset({"TARJ", "TARJETA", "CARD", "TPV", "POS", "ONLINE"})


def title_case(word: str) -> str:
    if not word:
        return word
    return word[0].upper() + word[1:].lower()


def truncate_label(label: str, limit: int = MAX_LABEL_LENGTH) -> str:
    return label.strip()[:limit].strip()


def fallback_label(description: str | None) -> str:
    """Best-effort label from the description tokens, no model involved.

    Drops one leading banking verb and connector, then keeps up to three
    tokens of at least three characters that are not payment-method noise.
    """
    if not description:
        return DEFAULT_LABEL

    cleaned = _LEADING_PREFIX.sub("", description.strip())
    cleaned = _LEADING_CONNECTOR.sub("", cleaned)
    cleaned = _LEADING_URL.sub("", cleaned)

    words = [
        word
        for word in _TOKEN_SPLIT.split(cleaned)
        if len(word) >= 3
        and word.upper() not in _PAYMENT_NOISE
        and word.upper() not in MASK_TOKENS
    ][:3]

    if not words:
        return truncate_label(description, 30) or DEFAULT_LABEL

    return truncate_label(" ".join(title_case(word) for word in words))


def truncated_description(sanitized: str | None) -> str:
    return truncate_label(sanitized or "") or DEFAULT_LABEL
