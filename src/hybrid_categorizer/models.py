import math
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

PIPELINE_VERSION = "v2_hybrid"

TypeHint = Literal["merchant", "transfer", "fee", "atm", "salary", "refund", "other"]
SimplifySource = Literal["rules", "ai", "fallback", "manual"]
CategorizeSource = Literal["rules", "ai", "fallback", "preference", "manual"]


def clamp_confidence(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"confidence must be a number, got {value!r}")
    value = float(value)
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


class TransactionRow(BaseModel):
    id: str
    description: str
    amount: Decimal
    store: str | None = None # Store name for receipt rows, if the importer knows it

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class ClassificationResult(BaseModel):
    simplified: str | None = None # None defers to the next tier
    confidence: float = 0.0
    matched_rule: str | None = None
    type_hint: TypeHint | None = None
    source: SimplifySource = "rules"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        return clamp_confidence(value)


class CategoryResult(BaseModel):
    category: str
    confidence: float = 0.0
    source: CategorizeSource = "ai"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        return clamp_confidence(value)


class SimplifyMetadata(BaseModel):
    source: SimplifySource = "rules"
    confidence: float = 0.0
    matched_rule: str | None = None
    type_hint: TypeHint | None = None


class CategorizeMetadata(BaseModel):
    source: CategorizeSource = "manual"
    confidence: float = 0.0


class TransactionMetadata(BaseModel):
    pipeline_version: str = PIPELINE_VERSION
    sanitized_description: str
    simplify: SimplifyMetadata = Field(default_factory=SimplifyMetadata)
    categorize: CategorizeMetadata = Field(default_factory=CategorizeMetadata)


class EnrichedRow(TransactionRow):
    model_config = ConfigDict(populate_by_name=True)

    simplified_description: str | None = None
    category: str | None = None
    metadata: TransactionMetadata = Field(alias="_metadata")


class SimplifyItem(BaseModel):
    id: str
    sanitized_description: str


class CategorizeItem(BaseModel):
    id: str
    description: str # simplified label, or the sanitized text when there is none
    amount: Decimal


class PreferenceEntry(BaseModel):
    description_key: str
    category: str
    store_key: str = "" # empty means global


class CoverageStats(BaseModel):
    total: int = 0
    rule_matched: int = 0
    ai_simplified: int = 0
    fallback_simplified: int = 0
    ai_categorized: int = 0
    fallback_categorized: int = 0
    preference_applied: int = 0
    categorized_non_catchall: int = 0

    @property
    def rule_match_rate(self) -> float:
        return self.rule_matched / self.total if self.total else 0.0

    @property
    def categorized_rate(self) -> float:
        return self.categorized_non_catchall / self.total if self.total else 0.0

    def as_dict(self) -> dict[str, Any]:
        data = self.model_dump()
        data["rule_match_rate"] = round(self.rule_match_rate, 4)
        data["categorized_rate"] = round(self.categorized_rate, 4)
        return data


class PipelineResult(BaseModel):
    rows: list[EnrichedRow]
    stats: CoverageStats
