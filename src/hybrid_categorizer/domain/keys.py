"""Lookup keys for user category preferences.

Both functions must stay byte-for-byte stable: keys are computed when a
correction is recorded and again when it is applied, and any drift makes
stored preferences silently stop matching.
"""

import re
import unicodedata

MAX_DESCRIPTION_KEY_LENGTH = 160
MAX_STORE_KEY_LENGTH = 120

_DATE = re.compile(r"\b\d{1,4}[/-]\d{1,2}[/-]\d{1,4}\b")
_NUMBER = re.compile(r"\b\d+(?:[.,]\d+)?\b")
_CURRENCY = re.compile(r"\b(?:eur|usd|gbp|mxn|ars|cop|brl|chf|cad|aud|nzd)\b")
_PAYMENT_NOISE = re.compile(r"\b(?:pos|tpv|tarjeta|card|debito|credito)\b")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_description_key(description: str | None) -> str:
    trimmed = (description or "").strip()
    if not trimmed:
        return ""

    key = strip_diacritics(trimmed.lower())
    key = _DATE.sub(" ", key)
    key = _NUMBER.sub(" ", key)
    key = _CURRENCY.sub(" ", key)
    key = _PAYMENT_NOISE.sub(" ", key)
    key = _NON_ALNUM.sub(" ", key)
    key = _WHITESPACE.sub(" ", key).strip()
    return key[:MAX_DESCRIPTION_KEY_LENGTH]


def normalize_store_key(store: str | None) -> str:
    key = strip_diacritics((store or "").strip().lower())
    return _WHITESPACE.sub(" ", key)[:MAX_STORE_KEY_LENGTH]
