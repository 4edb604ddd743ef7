import asyncio
from collections.abc import Iterable, Mapping, Sequence
from time import monotonic
from typing import Any

from pydantic import ValidationError

from hybrid_categorizer.categories import is_catch_all, normalize_vocabulary, resolve_category
from hybrid_categorizer.classifiers.base import CategorizeResolver, SimplifyResolver
from hybrid_categorizer.classifiers.categorize import RemoteCategorizer, heuristic_category
from hybrid_categorizer.classifiers.rules import RuleClassifier
from hybrid_categorizer.classifiers.simplify import RemoteSimplifier
from hybrid_categorizer.core.settings import RemoteSettings
from hybrid_categorizer.domain.labels import truncated_description
from hybrid_categorizer.domain.sanitize import sanitize
from hybrid_categorizer.integration.openrouter import ChatCompletionClient
from hybrid_categorizer.logger import get_logger
from hybrid_categorizer.models import (
    CategorizeItem,
    CategorizeMetadata,
    CategoryResult,
    ClassificationResult,
    CoverageStats,
    EnrichedRow,
    PipelineResult,
    PreferenceEntry,
    SimplifyItem,
    SimplifyMetadata,
    TransactionMetadata,
    TransactionRow,
)
from hybrid_categorizer.preferences import PreferenceBook

logger = get_logger(__name__)

LAST_RESORT_CONFIDENCE = 0.3

PreferencesInput = PreferenceBook | Mapping[str, str] | Iterable[PreferenceEntry | Mapping[str, Any]]


class ConfigurationError(ValueError):
    """Invalid rows or category vocabulary handed to the pipeline."""


def _validate_rows(rows: Iterable[TransactionRow | Mapping[str, Any]]) -> list[TransactionRow]:
    validated: list[TransactionRow] = []
    for index, row in enumerate(rows):
        if isinstance(row, TransactionRow):
            validated.append(row)
            continue
        try:
            validated.append(TransactionRow.model_validate(row))
        except ValidationError as exc:
            raise ConfigurationError(f"Row {index} is not a valid transaction: {exc}") from exc
    return validated


def _validate_vocabulary(categories: Iterable[str] | None) -> list[str]:
    if isinstance(categories, str):
        raise ConfigurationError("Categories must be a list of names, not a single string")
    vocabulary = normalize_vocabulary(categories)
    if not vocabulary:
        raise ConfigurationError("Category vocabulary is empty")
    return vocabulary


def _as_preference_book(preferences: PreferencesInput | None) -> PreferenceBook:
    if preferences is None:
        return PreferenceBook()
    if isinstance(preferences, PreferenceBook):
        return preferences
    if isinstance(preferences, Mapping):
        return PreferenceBook.from_mapping(preferences)
    try:
        return PreferenceBook.from_entries(preferences)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid preference entry: {exc}") from exc


class EnrichmentPipeline:
    """Sanitize, simplify, categorize and apply preferences to a batch of rows.

    Each stage runs its resolvers in order; a resolver only sees the rows the
    previous ones left unresolved. Rows are never mutated: every stage returns
    updated copies.
    """

    def __init__(
        self,
        settings: RemoteSettings | None = None,
        client: ChatCompletionClient | None = None,
        simplify_resolvers: Sequence[SimplifyResolver] | None = None,
        categorize_resolvers: Sequence[CategorizeResolver] | None = None,
    ):
        if settings is None:
            settings = client.settings if client is not None else RemoteSettings.from_env()
        self.settings = settings
        self.client = client or ChatCompletionClient(settings)

        if simplify_resolvers is None:
            simplify_resolvers = [
                RuleClassifier(threshold=settings.rule_confidence_threshold),
                RemoteSimplifier(self.client),
            ]
        if categorize_resolvers is None:
            categorize_resolvers = [RemoteCategorizer(self.client)]
        self.simplify_resolvers = list(simplify_resolvers)
        self.categorize_resolvers = list(categorize_resolvers)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def process(
        self,
        rows: Iterable[TransactionRow | Mapping[str, Any]],
        preferences: PreferencesInput | None = None,
        categories: Iterable[str] | None = None,
    ) -> PipelineResult:
        started = monotonic()
        validated = _validate_rows(rows)
        vocabulary = _validate_vocabulary(categories)
        book = _as_preference_book(preferences)

        enriched = [
            EnrichedRow(
                **row.model_dump(),
                metadata=TransactionMetadata(sanitized_description=sanitize(row.description)),
            )
            for row in validated
        ]
        logger.info(
            f"[PIPELINE] Processing {len(enriched)} row(s) against {len(vocabulary)} categories"
        )

        enriched = await self._simplify(enriched)
        enriched = await self._categorize(enriched, vocabulary)
        enriched = self._apply_preferences(enriched, book)

        stats = self._coverage(enriched, vocabulary)
        self._log_summary(stats, monotonic() - started)
        return PipelineResult(rows=enriched, stats=stats)

    async def _simplify(self, rows: list[EnrichedRow]) -> list[EnrichedRow]:
        rows = list(rows)
        pending = list(range(len(rows)))

        for resolver in self.simplify_resolvers:
            if not pending:
                break
            items = [
                SimplifyItem(id=str(index), sanitized_description=rows[index].metadata.sanitized_description)
                for index in pending
            ]
            results = await self._run_resolver(resolver, "SIMPLIFY", resolver.resolve(items))
            still_pending = []
            for index in pending:
                result = results.get(str(index))
                if result is not None and result.simplified and result.simplified.strip():
                    rows[index] = _with_simplification(rows[index], result)
                else:
                    still_pending.append(index)
            pending = still_pending

        for index in pending:
            sanitized = rows[index].metadata.sanitized_description
            rows[index] = _with_simplification(
                rows[index],
                ClassificationResult(
                    simplified=truncated_description(sanitized),
                    confidence=LAST_RESORT_CONFIDENCE,
                    matched_rule="truncated",
                    type_hint="other",
                    source="fallback",
                ),
            )
        return rows

    async def _categorize(self, rows: list[EnrichedRow], vocabulary: list[str]) -> list[EnrichedRow]:
        rows = list(rows)
        pending = list(range(len(rows)))

        for resolver in self.categorize_resolvers:
            if not pending:
                break
            items = [
                CategorizeItem(
                    id=str(index),
                    description=rows[index].simplified_description or rows[index].metadata.sanitized_description,
                    amount=rows[index].amount,
                )
                for index in pending
            ]
            results = await self._run_resolver(
                resolver, "CATEGORIZE", resolver.resolve(items, vocabulary)
            )
            still_pending = []
            for index in pending:
                result = results.get(str(index))
                if result is not None and result.category.strip():
                    category = resolve_category(result.category, vocabulary)
                    rows[index] = _with_category(rows[index], result.model_copy(update={"category": category}))
                else:
                    still_pending.append(index)
            pending = still_pending

        for index in pending:
            row = rows[index]
            rows[index] = _with_category(
                row,
                CategoryResult(
                    category=heuristic_category(row.simplified_description or "", row.amount, vocabulary),
                    confidence=LAST_RESORT_CONFIDENCE,
                    source="fallback",
                ),
            )
        return rows

    @staticmethod
    async def _run_resolver(resolver: Any, tag: str, call: Any) -> dict[str, Any]:
        resolver_name = resolver.__class__.__name__
        try:
            results = await call
        except Exception:
            logger.exception(f"[{tag}] {resolver_name} failed; treating its rows as unresolved")
            return {}
        logger.debug(f"[{tag}] {resolver_name} resolved {len(results)} row(s)")
        return results

    @staticmethod
    def _apply_preferences(rows: list[EnrichedRow], book: PreferenceBook) -> list[EnrichedRow]:
        if not book:
            return rows
        updated: list[EnrichedRow] = []
        for row in rows:
            store = row.store or row.simplified_description
            category = book.lookup(row.description, store)
            if category:
                row = _with_category(
                    row, CategoryResult(category=category, confidence=1.0, source="preference")
                )
            updated.append(row)
        return updated

    @staticmethod
    def _coverage(rows: list[EnrichedRow], vocabulary: list[str]) -> CoverageStats:
        stats = CoverageStats(total=len(rows))
        for row in rows:
            simplify_source = row.metadata.simplify.source
            categorize_source = row.metadata.categorize.source
            if simplify_source == "rules":
                stats.rule_matched += 1
            elif simplify_source == "ai":
                stats.ai_simplified += 1
            elif simplify_source == "fallback":
                stats.fallback_simplified += 1

            if categorize_source == "ai":
                stats.ai_categorized += 1
            elif categorize_source == "fallback":
                stats.fallback_categorized += 1
            elif categorize_source == "preference":
                stats.preference_applied += 1

            if not is_catch_all(row.category, vocabulary):
                stats.categorized_non_catchall += 1
        return stats

    @staticmethod
    def _log_summary(stats: CoverageStats, elapsed: float) -> None:
        logger.info(
            f"[PIPELINE] Done in {elapsed:.2f}s: {stats.total} row(s), "
            f"rules={stats.rule_matched} ({stats.rule_match_rate:.0%}), "
            f"ai={stats.ai_simplified}, fallback={stats.fallback_simplified} | "
            f"categorized ai={stats.ai_categorized}, fallback={stats.fallback_categorized}, "
            f"preference={stats.preference_applied}, "
            f"non-catch-all={stats.categorized_non_catchall} ({stats.categorized_rate:.0%})"
        )


def _with_simplification(row: EnrichedRow, result: ClassificationResult) -> EnrichedRow:
    metadata = row.metadata.model_copy(
        update={
            "simplify": SimplifyMetadata(
                source=result.source,
                confidence=result.confidence,
                matched_rule=result.matched_rule,
                type_hint=result.type_hint,
            )
        }
    )
    return row.model_copy(
        update={"simplified_description": result.simplified.strip(), "metadata": metadata}
    )


def _with_category(row: EnrichedRow, result: CategoryResult) -> EnrichedRow:
    metadata = row.metadata.model_copy(
        update={
            "categorize": CategorizeMetadata(source=result.source, confidence=result.confidence)
        }
    )
    return row.model_copy(update={"category": result.category, "metadata": metadata})


def run_pipeline(
    rows: Iterable[TransactionRow | Mapping[str, Any]],
    preferences: PreferencesInput | None = None,
    categories: Iterable[str] | None = None,
    settings: RemoteSettings | None = None,
) -> PipelineResult:
    """Synchronous wrapper around :meth:`EnrichmentPipeline.process`."""

    async def _run() -> PipelineResult:
        pipeline = EnrichmentPipeline(settings=settings)
        try:
            return await pipeline.process(rows, preferences=preferences, categories=categories)
        finally:
            await pipeline.aclose()

    return asyncio.run(_run())
