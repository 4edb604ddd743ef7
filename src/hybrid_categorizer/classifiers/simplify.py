import json

from hybrid_categorizer.domain.labels import fallback_label, truncate_label
from hybrid_categorizer.integration.openrouter import ChatCompletionClient, RemoteModelError
from hybrid_categorizer.logger import get_logger
from hybrid_categorizer.models import ClassificationResult, SimplifyItem
from hybrid_categorizer.services.batching import chunked, gather_bounded

from .base import SimplifyResolver
from .response import ResponseFormatError, parse_simplify_reply

logger = get_logger(__name__)

SIMPLIFY_TEMPERATURE = 0.3
HEURISTIC_CONFIDENCE = 0.3

SYSTEM_PROMPT = """You are a transaction description simplifier. Extract a clean, concise merchant name or label from each bank transaction description.

RULES:
1. Extract the PRIMARY merchant or service name (e.g. "Amazon", "Spotify", "Uber")
2. For transfers use "Transfer <FirstName>" or just "Transfer"
3. For generic operations use: "Bank Fee", "ATM Withdrawal", "Salary", "Refund"
4. Remove banking jargon (COMPRA, PAGO, TPV, POS, ...) and location details
5. Use Title Case and keep it SHORT (1-3 words)
6. Tokens CARD, IBAN, PHONE, AUTH and REF are masked data, never part of a label
7. If unclear, make a best guess; never return the full description

EXAMPLES:
"COMPRA ONLINE WWW.BOOKING.COM" -> "Booking.com"
"PAGO RESTAURANTE LA TASCA MADRID" -> "La Tasca"
"RECIBO MENSUAL ENDESA ENERGIA" -> "Endesa"
"CAJERO AUTOMATICO BBVA" -> "ATM Withdrawal"

RESPONSE FORMAT - return ONLY a JSON object:
{{"results": [{{"id": "t0", "simplified": "Amazon", "confidence": 0.9}}]}}

IMPORTANT:
- Return ALL {count} items
- Use "id" exactly as provided
- Confidence is 0.0-1.0
- "simplified" is at most 50 characters"""


def heuristic_simplify(item: SimplifyItem, matched_rule: str = "fallback") -> ClassificationResult:
    return ClassificationResult(
        simplified=fallback_label(item.sanitized_description),
        confidence=HEURISTIC_CONFIDENCE,
        matched_rule=matched_rule,
        type_hint="other",
        source="fallback",
    )


class RemoteSimplifier(SimplifyResolver):
    """Labels the descriptions the rules left unresolved, in batches, through the model chain."""

    def __init__(
        self,
        client: ChatCompletionClient,
        batch_size: int | None = None,
        concurrency: int | None = None,
        model: str | None = None,
    ):
        self.client = client
        self.batch_size = batch_size or client.settings.simplify_batch_size
        self.concurrency = concurrency or client.settings.concurrency
        self.model = model or client.settings.simplify_model

    async def resolve(self, items: list[SimplifyItem]) -> dict[str, ClassificationResult]:
        return await self.simplify_batch(items)

    async def simplify_batch(self, items: list[SimplifyItem]) -> dict[str, ClassificationResult]:
        if not items:
            return {}

        if not self.client.enabled:
            logger.warning(
                f"[SIMPLIFY] No OPENROUTER_API_KEY configured, using heuristic labels "
                f"for {len(items)} item(s)"
            )
            return {item.id: heuristic_simplify(item) for item in items}

        batches = chunked(items, self.batch_size)
        logger.info(
            f"[SIMPLIFY] Sending {len(items)} item(s) in {len(batches)} batch(es) to {self.model}"
        )
        batch_results = await gather_bounded(
            enumerate(batches, start=1),
            self._process_batch,
            concurrency=self.concurrency,
            return_exceptions=True,
        )

        results: dict[str, ClassificationResult] = {}
        for batch_num, (batch, batch_result) in enumerate(zip(batches, batch_results), start=1):
            if isinstance(batch_result, BaseException):
                if not isinstance(batch_result, Exception):
                    raise batch_result
                logger.error(
                    f"[SIMPLIFY] Batch {batch_num} crashed ({batch_result!r}), using heuristic labels"
                )
                batch_result = {item.id: heuristic_simplify(item) for item in batch}
            results.update(batch_result)
        return results

    async def _process_batch(
        self, numbered: tuple[int, list[SimplifyItem]]
    ) -> dict[str, ClassificationResult]:
        batch_num, batch = numbered
        keyed = {f"t{index}": item for index, item in enumerate(batch)}
        payload = json.dumps(
            [
                {"id": key, "description": item.sanitized_description}
                for key, item in keyed.items()
            ],
            ensure_ascii=False,
        )

        try:
            content = await self.client.complete_with_fallback(
                SYSTEM_PROMPT.format(count=len(batch)),
                payload,
                SIMPLIFY_TEMPERATURE,
                primary_model=self.model,
                tag="SIMPLIFY",
            )
        except RemoteModelError:
            logger.error(f"[SIMPLIFY] Batch {batch_num}: both models failed, using heuristic labels")
            return {item.id: heuristic_simplify(item) for item in batch}

        try:
            replies = parse_simplify_reply(content)
        except ResponseFormatError as exc:
            logger.error(f"[SIMPLIFY] Batch {batch_num}: unusable reply ({exc}), using heuristic labels")
            return {item.id: heuristic_simplify(item) for item in batch}

        results: dict[str, ClassificationResult] = {}
        missing = 0
        for key, item in keyed.items():
            reply = replies.get(key)
            label = truncate_label(reply.simplified) if reply else ""
            if not label:
                missing += 1
                results[item.id] = heuristic_simplify(item, matched_rule="ai_fallback")
                continue
            results[item.id] = ClassificationResult(
                simplified=label,
                confidence=reply.confidence,
                matched_rule="ai",
                type_hint="other",
                source="ai",
            )

        if missing:
            logger.warning(f"[SIMPLIFY] Batch {batch_num}: {missing} item(s) missing from reply")
        return results
