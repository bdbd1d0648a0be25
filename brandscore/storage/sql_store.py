"""SQLAlchemy-backed result store (async sessions, upsert via merge)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from brandscore.analysis.types import (
    CitationCategory,
    CitationCategoryLabel,
    ClassificationSource,
    MetricResult,
    SentimentLabel,
    SentimentResult,
)
from brandscore.storage.models import Base, CitationCategoryRow, MetricResultRow, SentimentResultRow
from brandscore.storage.store import ResultStore

logger = logging.getLogger(__name__)


class SqlResultStore(ResultStore):
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> SqlResultStore:
        return cls(create_async_engine(database_url, echo=echo, pool_pre_ping=True))

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _merge(self, row) -> None:
        async with self.session_factory() as session:
            await session.merge(row)
            await session.commit()

    async def upsert_metric(self, metric: MetricResult) -> None:
        await self._merge(
            MetricResultRow(
                record_id=metric.record_id,
                entity=metric.entity,
                is_brand=metric.is_brand,
                visibility_index=metric.visibility_index,
                share_of_answers=metric.share_of_answers,
                first_position=metric.first_position,
                total_mentions=metric.total_mentions,
                product_mentions=metric.product_mentions,
                total_words=metric.total_words,
                scored_at=datetime.now(timezone.utc),
            )
        )

    async def upsert_citation(self, category: CitationCategory) -> None:
        await self._merge(
            CitationCategoryRow(
                domain=category.domain,
                category=category.category.value,
                confidence=category.confidence,
                source=category.source.value,
                page_name=category.page_name,
                updated_at=datetime.now(timezone.utc),
            )
        )

    async def upsert_sentiment(self, sentiment: SentimentResult) -> None:
        data = sentiment.to_dict()
        await self._merge(
            SentimentResultRow(
                record_id=sentiment.record_id,
                entity=sentiment.entity,
                label=sentiment.label.value,
                score=sentiment.score,
                score_100=data["score_100"],
                positive_evidence=sentiment.positive_evidence,
                negative_evidence=sentiment.negative_evidence,
                provider=sentiment.provider,
                provider_exhausted=sentiment.provider_exhausted,
                scored_at=datetime.now(timezone.utc),
            )
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def has_metrics(self, record_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MetricResultRow.record_id).where(MetricResultRow.record_id == record_id).limit(1)
            )
            return result.scalar_one_or_none() is not None

    async def get_metrics(self, record_id: str) -> list[MetricResult]:
        async with self.session_factory() as session:
            result = await session.execute(select(MetricResultRow).where(MetricResultRow.record_id == record_id))
            return [
                MetricResult(
                    record_id=row.record_id,
                    entity=row.entity,
                    is_brand=row.is_brand,
                    visibility_index=row.visibility_index,
                    share_of_answers=row.share_of_answers,
                    first_position=row.first_position,
                    total_mentions=row.total_mentions,
                    product_mentions=row.product_mentions,
                    total_words=row.total_words,
                )
                for row in result.scalars().all()
            ]

    async def get_citation(self, domain: str) -> CitationCategory | None:
        async with self.session_factory() as session:
            row = await session.get(CitationCategoryRow, domain)
            if row is None:
                return None
            return CitationCategory(
                domain=row.domain,
                category=CitationCategoryLabel(row.category),
                confidence=row.confidence,
                source=ClassificationSource(row.source),
                page_name=row.page_name,
            )

    async def get_sentiments(self, record_id: str) -> list[SentimentResult]:
        async with self.session_factory() as session:
            result = await session.execute(select(SentimentResultRow).where(SentimentResultRow.record_id == record_id))
            return [
                SentimentResult(
                    record_id=row.record_id,
                    entity=row.entity,
                    label=SentimentLabel(row.label),
                    score=row.score,
                    positive_evidence=list(row.positive_evidence or []),
                    negative_evidence=list(row.negative_evidence or []),
                    provider=row.provider,
                    provider_exhausted=row.provider_exhausted,
                )
                for row in result.scalars().all()
            ]
