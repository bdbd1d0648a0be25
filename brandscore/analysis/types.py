"""Core types and DTOs for the scoring pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from brandscore.core.errors import ErrorKind, RecordValidationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CitationCategoryLabel(str, Enum):
    """Fixed taxonomy for cited source domains."""

    EDITORIAL = "Editorial"  # News, blogs, media outlets
    CORPORATE = "Corporate"  # Company and business sites
    REFERENCE = "Reference"  # Wikis, knowledge bases
    UGC = "UGC"  # Reviews, marketplaces, user content
    SOCIAL = "Social"  # Social platforms
    INSTITUTIONAL = "Institutional"  # .edu / .gov / archives
    OTHER = "Other"  # Could not be classified


class ClassificationSource(str, Enum):
    """Which classifier tier produced a CitationCategory."""

    CACHE = "cache"
    HARDCODED = "hardcoded"
    HEURISTIC = "heuristic"
    AI = "ai"
    HEURISTIC_FALLBACK = "heuristic-fallback"  # AI failed, degraded result


class SentimentLabel(str, Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"


class RecordState(str, Enum):
    """Per-record lifecycle inside the orchestrator."""

    PENDING = "pending"
    CONSOLIDATED_ATTEMPTED = "consolidated_attempted"
    CONSOLIDATED_SUCCEEDED = "consolidated_succeeded"
    FALLBACK_REQUIRED = "fallback_required"
    COMPONENTS_RUN = "components_run"
    PERSISTED = "persisted"
    FAILED = "failed"  # rejected by validation or crashed


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawAnswerRecord:
    """One raw AI-generated answer, deposited by the upstream collector.

    Read-only for the whole pipeline.
    """

    id: str
    source_provider: str = ""
    question_text: str = ""
    answer_text: str | None = ""
    cited_urls: tuple[str, ...] = ()
    brand_ref: str = ""
    competitor_refs: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def validate(self) -> None:
        missing = []
        if not self.id:
            missing.append("id")
        if not self.brand_ref:
            missing.append("brand_ref")
        if self.answer_text is None:
            missing.append("answer_text")
        if missing:
            raise RecordValidationError(f"Record {self.id or '<no id>'} missing required fields: {', '.join(missing)}")

    @classmethod
    def from_dict(cls, data: dict) -> RawAnswerRecord:
        created = data.get("created_at")
        if isinstance(created, str):
            created = datetime.fromisoformat(created)
        return cls(
            id=str(data.get("id") or ""),
            source_provider=data.get("source_provider", ""),
            question_text=data.get("question_text", ""),
            answer_text=data.get("answer_text"),
            cited_urls=tuple(data.get("cited_urls") or ()),
            brand_ref=data.get("brand_ref", ""),
            competitor_refs=tuple(data.get("competitor_refs") or ()),
            created_at=created or datetime.now(timezone.utc),
        )


@dataclass(frozen=True)
class EntityProfile:
    """A brand or competitor, supplied by configuration."""

    canonical_name: str
    aliases: tuple[str, ...] = ()
    product_names: tuple[str, ...] = ()

    def all_names(self) -> list[str]:
        """Canonical name, aliases and products, de-duplicated case-insensitively."""
        seen: set[str] = set()
        names: list[str] = []
        for name in (self.canonical_name, *self.aliases, *self.product_names):
            key = name.strip().lower()
            if key and key not in seen:
                seen.add(key)
                names.append(name.strip())
        return names

    def with_products(self, products: list[str]) -> EntityProfile:
        """Return a copy whose product list also includes `products`."""
        merged = list(self.product_names)
        known = {p.lower() for p in merged}
        for product in products:
            if product and product.lower() not in known:
                known.add(product.lower())
                merged.append(product)
        return EntityProfile(self.canonical_name, self.aliases, tuple(merged))

    @classmethod
    def from_dict(cls, data: dict) -> EntityProfile:
        return cls(
            canonical_name=data["canonical_name"],
            aliases=tuple(data.get("aliases") or ()),
            product_names=tuple(data.get("product_names") or ()),
        )


# ---------------------------------------------------------------------------
# Occurrences (ephemeral, never persisted)
# ---------------------------------------------------------------------------


@dataclass
class Occurrence:
    token_position: int  # 1-indexed
    matched_term: str = ""
    partial: bool = False  # substring hit inside a longer token


@dataclass
class OccurrenceSet:
    entity: str
    occurrences: list[Occurrence] = field(default_factory=list)  # sorted, one per token position
    product_mentions: int = 0  # product-name hits, counted per match
    total_words: int = 0

    @property
    def positions(self) -> list[int]:
        return [o.token_position for o in self.occurrences]

    @property
    def total_mentions(self) -> int:
        return len(self.occurrences)

    @property
    def first_position(self) -> int | None:
        return self.occurrences[0].token_position if self.occurrences else None


@dataclass
class CitedUrl:
    """A URL the answer cited, either natively or inline in its text."""

    url: str
    domain: str = ""
    anchor_text: str = ""
    is_native: bool = False  # supplied in RawAnswerRecord.cited_urls


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass
class MetricResult:
    """Visibility and share scores for one (record, entity) pair."""

    record_id: str
    entity: str
    is_brand: bool = True
    visibility_index: float = 0.0  # 0..1
    share_of_answers: float = 0.0  # 0..100
    first_position: int | None = None
    total_mentions: int = 0
    product_mentions: int = 0
    total_words: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.record_id, self.entity)

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "entity": self.entity,
            "is_brand": self.is_brand,
            "visibility_index": round(self.visibility_index, 4),
            "share_of_answers": round(self.share_of_answers, 2),
            "first_position": self.first_position,
            "total_mentions": self.total_mentions,
            "product_mentions": self.product_mentions,
            "total_words": self.total_words,
        }


@dataclass
class CitationCategory:
    """Category of a cited domain. Shared across records."""

    domain: str
    category: CitationCategoryLabel = CitationCategoryLabel.OTHER
    confidence: float = 0.0
    source: ClassificationSource = ClassificationSource.HEURISTIC_FALLBACK
    page_name: str | None = None

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "category": self.category.value,
            "confidence": self.confidence,
            "source": self.source.value,
            "page_name": self.page_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CitationCategory:
        return cls(
            domain=data["domain"],
            category=CitationCategoryLabel(data.get("category", "Other")),
            confidence=float(data.get("confidence", 0.0)),
            source=ClassificationSource(data.get("source", "heuristic-fallback")),
            page_name=data.get("page_name"),
        )


@dataclass
class SentimentResult:
    """Sentiment toward one entity in one record.

    score is always on the [-1.0, 1.0] scale inside the pipeline.
    """

    record_id: str
    entity: str
    label: SentimentLabel = SentimentLabel.NEUTRAL
    score: float = 0.0
    positive_evidence: list[str] = field(default_factory=list)
    negative_evidence: list[str] = field(default_factory=list)
    provider: str = ""
    provider_exhausted: bool = False  # True = "unavailable", not "neutral"
    error_kind: ErrorKind | None = None  # why the last provider failed, when exhausted

    @property
    def key(self) -> tuple[str, str]:
        return (self.record_id, self.entity)

    def to_dict(self) -> dict:
        """Serialize for storage/dashboard; the only place score_100 exists."""
        from brandscore.analysis.scoring import to_score_100

        return {
            "record_id": self.record_id,
            "entity": self.entity,
            "label": self.label.value,
            "score": round(self.score, 4),
            "score_100": to_score_100(self.score),
            "positive_evidence": self.positive_evidence,
            "negative_evidence": self.negative_evidence,
            "provider": self.provider,
            "provider_exhausted": self.provider_exhausted,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass
class ConsolidatedAnalysisResult:
    """Everything one consolidated LLM call produced for a record."""

    record_id: str
    products: dict[str, list[str]] = field(default_factory=dict)  # entity -> product names
    citations: dict[str, CitationCategory] = field(default_factory=dict)  # domain -> category
    sentiments: dict[str, SentimentResult] = field(default_factory=dict)  # entity -> sentiment
    tokens_used: int = 0


# ---------------------------------------------------------------------------
# Orchestrator reporting
# ---------------------------------------------------------------------------


@dataclass
class OperationError:
    record_id: str
    operation: str  # consolidated_analysis | citation_classification | sentiment | validation | persist
    error_kind: ErrorKind = ErrorKind.UNEXPECTED_ERROR
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "operation": self.operation,
            "error_kind": self.error_kind.value,
            "message": self.message,
        }


@dataclass
class RecordOutcome:
    record_id: str
    state: RecordState = RecordState.PENDING
    succeeded: bool = False
    used_consolidated: bool = False
    metrics: list[MetricResult] = field(default_factory=list)
    citations: list[CitationCategory] = field(default_factory=list)
    sentiments: list[SentimentResult] = field(default_factory=list)
    errors: list[OperationError] = field(default_factory=list)


@dataclass
class BatchSummary:
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    per_operation_errors: list[OperationError] = field(default_factory=list)
    outcomes: list[RecordOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "per_operation_errors": [e.to_dict() for e in self.per_operation_errors],
        }
