"""Masking of personally identifying fragments in statement descriptions.

The masked tokens (``CARD``, ``IBAN``, ``PHONE``, ``AUTH``, ``REF``) are stable
so that ``sanitize`` is idempotent and downstream rules can ignore them.
"""

import re

MASK_TOKENS = frozenset({"CARD", "IBAN", "PHONE", "AUTH", "REF"})

_CARD_PATTERNS = (
    # 1234 5678 9012 3456, 1234-5678-9012-3456-789
    re.compile(r"\b\d{4}(?:[ -]\d{4}){3}(?:[ -]\d{1,4})?\b"),
    # **** 9012, XXXX1234
    re.compile(r"(?<!\w)(?:\*{2,}|[xX]{4,})[ *-]*\d{4}(?:[ -]\d{4})*\b"),
    # TARJ*1234, TARJETA 1234, CARD 5678, CARTE 1234
    re.compile(r"\b(?:TARJETA|TARJ|CARD|CARTE|KARTE)[\s*#:.xX-]*\d{4,}(?:[ -]\d{4})*\b", re.IGNORECASE),
)

# Country code, check digits, then at least twelve more (16+ after the country code)
_IBAN_PATTERN = re.compile(r"\b[A-Z]{2}\d{2}[A-Z0-9]{12,30}\b", re.IGNORECASE)

_PHONE_PATTERNS = (
    re.compile(r"\+\d{1,3}(?:[ .-]?\d{2,4}){2,5}\b"),
    re.compile(r"(?<!\w)\(\d{2,4}\)[ .-]?\d{3}[ .-]?\d{3,4}\b"),
    re.compile(r"\b\d{3}[.-]\d{3}[.-]\d{4}\b"),
    re.compile(r"\b[6789]\d{2}[ .]\d{3}[ .]\d{3}\b"),
    re.compile(r"\b[6789]\d{8}\b"),
)

# The code must contain a digit so that "AUTH AMAZON" survives a second pass
_AUTH_PATTERN = re.compile(
    r"\b(?:AUTHORIZATION|AUTORIZACI[OÓ]N|AUTH)\s*[:#.]?\s*(?=[A-Z]*\d)[A-Z0-9]{6,}\b",
    re.IGNORECASE,
)

_REF_PREFIX_PATTERN = re.compile(
    r"\bREF(?:ERENCIA|ERENCE)?\s*[:#]\s*(?=[A-Z-]*\d)[A-Z0-9-]+",
    re.IGNORECASE,
)
_LONG_DIGITS_PATTERN = re.compile(r"\b\d{12,}\b")

_WHITESPACE = re.compile(r"\s+")


def _mask_once(text: str) -> str:
    for pattern in _CARD_PATTERNS:
        text = pattern.sub("CARD", text)

    text = _IBAN_PATTERN.sub("IBAN", text)

    for pattern in _PHONE_PATTERNS:
        text = pattern.sub("PHONE", text)

    text = _AUTH_PATTERN.sub("AUTH", text)

    text = _REF_PREFIX_PATTERN.sub("REF", text)
    text = _LONG_DIGITS_PATTERN.sub("REF", text)

    return _WHITESPACE.sub(" ", text).strip()


def sanitize(raw: str | None) -> str:
    """Mask PII fragments until the text is stable.

    Every pass that changes collapsed text removes digits, so the loop ends
    and the result is idempotent even when one mask exposes another match.
    """
    if not raw:
        return ""

    text = _mask_once(raw)
    while True:
        masked = _mask_once(text)
        if masked == text:
            return text
        text = masked
