import json
import re
from decimal import Decimal

from hybrid_categorizer.categories import catch_all_category, resolve_category
from hybrid_categorizer.domain.keys import strip_diacritics
from hybrid_categorizer.integration.openrouter import ChatCompletionClient, RemoteModelError
from hybrid_categorizer.logger import get_logger
from hybrid_categorizer.models import CategorizeItem, CategoryResult
from hybrid_categorizer.services.batching import chunked, gather_bounded

from .base import CategorizeResolver
from .patterns import MERCHANT_RULES
from .response import ResponseFormatError, parse_category_reply

logger = get_logger(__name__)

CATEGORIZE_TEMPERATURE = 0.1
HEURISTIC_CONFIDENCE = 0.3

SYSTEM_PROMPT = """You are a transaction categorization expert. Put each transaction into exactly ONE of the available categories, based on its simplified merchant name and amount.

AVAILABLE CATEGORIES:
{categories}

RULES:
1. Use ONLY categories from the list above, spelled exactly as listed
2. "description" is the primary signal (e.g. "Amazon", "Spotify", "Transfer Juan")
3. Negative amounts are expenses, positive amounts are income
4. Transfers look like "Transfer <Name>", "Bizum <Name>" or just "Transfer"
5. A positive amount that is not salary or a bonus is most likely a transfer or a refund
6. Use "{catch_all}" ONLY as a last resort
7. Be consistent: the same merchant always gets the same category

RESPONSE FORMAT - return ONLY a JSON object:
{{"results": [{{"id": "t0", "category": "Groceries", "confidence": 0.95}}]}}

IMPORTANT:
- Return ALL {count} transactions
- Use "id" exactly as provided
- Confidence is 0.0-1.0"""

# Targets are vocabulary names or alias keys; resolve_category maps them onto the active vocabulary.
_INCOME_KEYWORDS = (
    (re.compile(r"salary|payroll|nomina|salario|sueldo|salaire|gehalt|pension"), "salary"),
    (re.compile(r"bonus|prima|paga extra"), "bonus"),
    (re.compile(r"refund|reversal|devolucion|reembolso|remboursement"), "refund"),
    (re.compile(r"transfer|bizum|traspaso|virement|venmo|zelle"), "transfer"),
)

_EXPENSE_KEYWORDS = (
    (re.compile(r"uber eats|glovo|just eat|deliveroo"), "delivery"),
    (re.compile(r"mercadona|carrefour|lidl|\bdia\b|aldi|eroski|alcampo|tesco|supermercado"), "grocery"),
    (re.compile(r"spotify|netflix|disney|hbo|apple|google|prime video"), "subscription"),
    (re.compile(r"uber|cabify|bolt|taxi|free now"), "taxi"),
    (re.compile(r"amazon|zara|ikea|primark|corte ingles"), "shopping"),
    (re.compile(r"renfe|metro|\bemt\b|\btmb\b|\btfl\b|sncf|ratp|autobus"), "public transport"),
    (re.compile(r"repsol|cepsa|galp|shell|gas station|gasolinera"), "fuel"),
    (re.compile(r"\bfees?\b|comision|commission|gastos"), "fees"),
    (re.compile(r"\batm\b|cajero|withdrawal|retirada"), "atm"),
    (re.compile(r"endesa|iberdrola|naturgy|vodafone|movistar|orange|electricidad|\bagua"), "utility"),
    (re.compile(r"transfer|bizum|traspaso|virement"), "transfer"),
)

# Reversed so the first rule for a label wins.
_MERCHANT_CATEGORIES = {rule.label.lower(): rule.category for rule in reversed(MERCHANT_RULES)}


def heuristic_category(description: str, amount: Decimal | float, vocabulary: list[str]) -> str:
    """Pick a category from keywords and the amount sign, always within the vocabulary."""
    text = strip_diacritics((description or "").lower())

    if amount > 0:
        for pattern, target in _INCOME_KEYWORDS:
            if pattern.search(text):
                return resolve_category(target, vocabulary)
        return resolve_category(None, vocabulary)

    merchant_category = _MERCHANT_CATEGORIES.get(text.strip())
    if merchant_category:
        return resolve_category(merchant_category, vocabulary)

    for pattern, target in _EXPENSE_KEYWORDS:
        if pattern.search(text):
            return resolve_category(target, vocabulary)
    return resolve_category(None, vocabulary)


def _heuristic_result(item: CategorizeItem, vocabulary: list[str]) -> CategoryResult:
    return CategoryResult(
        category=heuristic_category(item.description, item.amount, vocabulary),
        confidence=HEURISTIC_CONFIDENCE,
        source="fallback",
    )


class RemoteCategorizer(CategorizeResolver):
    def __init__(
        self,
        client: ChatCompletionClient,
        batch_size: int | None = None,
        concurrency: int | None = None,
        model: str | None = None,
    ):
        self.client = client
        self.batch_size = batch_size or client.settings.categorize_batch_size
        self.concurrency = concurrency or client.settings.concurrency
        self.model = model or client.settings.category_model

    async def resolve(
        self, items: list[CategorizeItem], categories: list[str]
    ) -> dict[str, CategoryResult]:
        return await self.categorize_batch(items, categories)

    async def categorize_batch(
        self, items: list[CategorizeItem], allowed_categories: list[str]
    ) -> dict[str, CategoryResult]:
        if not items:
            return {}

        if not self.client.enabled:
            logger.warning(
                f"[CATEGORIZE] No OPENROUTER_API_KEY configured, using heuristic categories "
                f"for {len(items)} item(s)"
            )
            return {item.id: _heuristic_result(item, allowed_categories) for item in items}

        batches = chunked(items, self.batch_size)
        logger.info(
            f"[CATEGORIZE] Sending {len(items)} item(s) in {len(batches)} batch(es) to {self.model}"
        )

        async def _worker(numbered: tuple[int, list[CategorizeItem]]) -> dict[str, CategoryResult]:
            return await self._process_batch(numbered[0], numbered[1], allowed_categories)

        batch_results = await gather_bounded(
            enumerate(batches, start=1),
            _worker,
            concurrency=self.concurrency,
            return_exceptions=True,
        )

        results: dict[str, CategoryResult] = {}
        for batch_num, (batch, batch_result) in enumerate(zip(batches, batch_results), start=1):
            if isinstance(batch_result, BaseException):
                if not isinstance(batch_result, Exception):
                    raise batch_result
                logger.error(
                    f"[CATEGORIZE] Batch {batch_num} crashed ({batch_result!r}), "
                    "using heuristic categories"
                )
                batch_result = {
                    item.id: _heuristic_result(item, allowed_categories) for item in batch
                }
            results.update(batch_result)
        return results

    async def _process_batch(
        self, batch_num: int, batch: list[CategorizeItem], vocabulary: list[str]
    ) -> dict[str, CategoryResult]:
        keyed = {f"t{index}": item for index, item in enumerate(batch)}
        payload = json.dumps(
            [
                {"id": key, "description": item.description, "amount": float(item.amount)}
                for key, item in keyed.items()
            ],
            ensure_ascii=False,
        )
        system = SYSTEM_PROMPT.format(
            categories="\n".join(f"- {name}" for name in vocabulary),
            catch_all=catch_all_category(vocabulary),
            count=len(batch),
        )

        try:
            content = await self.client.complete_with_fallback(
                system,
                payload,
                CATEGORIZE_TEMPERATURE,
                primary_model=self.model,
                tag="CATEGORIZE",
            )
        except RemoteModelError:
            logger.error(
                f"[CATEGORIZE] Batch {batch_num}: both models failed, using heuristic categories"
            )
            return {item.id: _heuristic_result(item, vocabulary) for item in batch}

        try:
            replies = parse_category_reply(content)
        except ResponseFormatError as exc:
            logger.error(
                f"[CATEGORIZE] Batch {batch_num}: unusable reply ({exc}), using heuristic categories"
            )
            return {item.id: _heuristic_result(item, vocabulary) for item in batch}

        results: dict[str, CategoryResult] = {}
        missing = 0
        for key, item in keyed.items():
            reply = replies.get(key)
            if reply is None or not reply.category.strip():
                missing += 1
                results[item.id] = _heuristic_result(item, vocabulary)
                continue
            results[item.id] = CategoryResult(
                category=resolve_category(reply.category, vocabulary),
                confidence=reply.confidence,
                source="ai",
            )

        if missing:
            logger.warning(f"[CATEGORIZE] Batch {batch_num}: {missing} item(s) missing from reply")
        return results
