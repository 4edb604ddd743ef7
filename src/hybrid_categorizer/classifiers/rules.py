import re

from hybrid_categorizer.core.settings import DEFAULT_RULE_CONFIDENCE_THRESHOLD
from hybrid_categorizer.domain.labels import title_case
from hybrid_categorizer.models import ClassificationResult, SimplifyItem

from .base import SimplifyResolver
from .patterns import (
    HONORIFICS,
    MERCHANT_RULES,
    NAME_SKIP_WORDS,
    OPERATION_RULES,
    PEER_PAYMENT_RULES,
    TRANSFER_CONFIDENCE,
    TRANSFER_NAMED_CONFIDENCE,
    TRANSFER_RULES,
    TransferRule,
)

_NAME_SPLIT = re.compile(r"[\W_]+")


class RuleClassifier(SimplifyResolver):
    """Deterministic labelling from the static merchant, transfer and operation tables."""

    def __init__(self, threshold: float = DEFAULT_RULE_CONFIDENCE_THRESHOLD):
        self.threshold = threshold

    def classify(self, sanitized: str) -> ClassificationResult:
        if not sanitized:
            return ClassificationResult()

        for rule in MERCHANT_RULES:
            if rule.pattern.search(sanitized):
                return ClassificationResult(
                    simplified=rule.label,
                    confidence=rule.confidence,
                    matched_rule=f"merchant:{rule.label.lower()}",
                    type_hint="merchant",
                )

        transfer = self._classify_transfer(sanitized)
        if transfer is not None:
            return transfer

        for rule in OPERATION_RULES:
            if rule.pattern.search(sanitized):
                return ClassificationResult(
                    simplified=rule.label,
                    confidence=rule.confidence,
                    matched_rule=rule.type_hint,
                    type_hint=rule.type_hint,
                )

        return ClassificationResult()

    async def resolve(self, items: list[SimplifyItem]) -> dict[str, ClassificationResult]:
        resolved: dict[str, ClassificationResult] = {}
        for item in items:
            result = self.classify(item.sanitized_description)
            if result.simplified and result.confidence >= self.threshold:
                resolved[item.id] = result
        return resolved

    def _classify_transfer(self, sanitized: str) -> ClassificationResult | None:
        # The leftmost indicator wins; peer-payment brands win ties.
        best: tuple[int, TransferRule, re.Match[str]] | None = None
        for rule in PEER_PAYMENT_RULES + TRANSFER_RULES:
            match = rule.pattern.search(sanitized)
            if match and (best is None or match.start() < best[0]):
                best = (match.start(), rule, match)

        if best is None:
            return None

        _, rule, match = best
        name = extract_counterpart_name(sanitized[match.end():])
        matched_rule = f"transfer:{rule.label.lower()}"
        if name:
            return ClassificationResult(
                simplified=f"{rule.label} {name}",
                confidence=TRANSFER_NAMED_CONFIDENCE,
                matched_rule=matched_rule,
                type_hint="transfer",
            )
        return ClassificationResult(
            simplified=rule.label,
            confidence=TRANSFER_CONFIDENCE,
            matched_rule=matched_rule,
            type_hint="transfer",
        )


def extract_counterpart_name(text: str) -> str | None:
    """First alphabetic word after a transfer indicator, skipping honorifics and connectors."""
    for token in _NAME_SPLIT.split(text):
        upper = token.upper()
        if not token or upper in HONORIFICS or upper in NAME_SKIP_WORDS:
            continue
        if token.isalpha() and len(token) >= 2:
            return title_case(token)
    return None
