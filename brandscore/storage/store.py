"""Result store contract.

All writes are upserts keyed by (record_id, entity) or domain, so re-running
a record never duplicates rows.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from brandscore.analysis.types import CitationCategory, MetricResult, SentimentResult


class ResultStore(ABC):
    @abstractmethod
    async def has_metrics(self, record_id: str) -> bool:
        """True when the record already has persisted metric results."""
        ...

    @abstractmethod
    async def upsert_metric(self, metric: MetricResult) -> None: ...

    @abstractmethod
    async def upsert_citation(self, category: CitationCategory) -> None: ...

    @abstractmethod
    async def upsert_sentiment(self, sentiment: SentimentResult) -> None: ...

    @abstractmethod
    async def get_metrics(self, record_id: str) -> list[MetricResult]: ...

    @abstractmethod
    async def get_citation(self, domain: str) -> CitationCategory | None: ...

    @abstractmethod
    async def get_sentiments(self, record_id: str) -> list[SentimentResult]: ...

    async def close(self) -> None:
        return None


class InMemoryResultStore(ResultStore):
    """Dict-backed store for tests and dry runs."""

    def __init__(self):
        self.metrics: dict[tuple[str, str], MetricResult] = {}
        self.citations: dict[str, CitationCategory] = {}
        self.sentiments: dict[tuple[str, str], SentimentResult] = {}

    async def has_metrics(self, record_id: str) -> bool:
        return any(key[0] == record_id for key in self.metrics)

    async def upsert_metric(self, metric: MetricResult) -> None:
        self.metrics[metric.key] = metric

    async def upsert_citation(self, category: CitationCategory) -> None:
        self.citations[category.domain] = category

    async def upsert_sentiment(self, sentiment: SentimentResult) -> None:
        self.sentiments[sentiment.key] = sentiment

    async def get_metrics(self, record_id: str) -> list[MetricResult]:
        return [m for key, m in self.metrics.items() if key[0] == record_id]

    async def get_citation(self, domain: str) -> CitationCategory | None:
        return self.citations.get(domain)

    async def get_sentiments(self, record_id: str) -> list[SentimentResult]:
        return [s for key, s in self.sentiments.items() if key[0] == record_id]
