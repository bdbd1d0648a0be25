from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class MetricResultRow(Base):
    """Visibility / share scores for one entity in one raw answer."""

    __tablename__ = "metric_results"

    record_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    entity: Mapped[str] = mapped_column(String(255), primary_key=True)
    is_brand: Mapped[bool] = mapped_column(Boolean, default=False)
    visibility_index: Mapped[float] = mapped_column(Float, default=0.0)  # 0..1
    share_of_answers: Mapped[float] = mapped_column(Float, default=0.0)  # 0..100
    first_position: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-indexed token
    total_mentions: Mapped[int] = mapped_column(Integer, default=0)
    product_mentions: Mapped[int] = mapped_column(Integer, default=0)
    total_words: Mapped[int] = mapped_column(Integer, default=0)

    scored_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class CitationCategoryRow(Base):
    """Category of a cited domain, shared by every record citing it."""

    __tablename__ = "citation_categories"

    domain: Mapped[str] = mapped_column(String(255), primary_key=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)  # Editorial | Corporate | ... | Other
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # hardcoded | heuristic | ai | heuristic-fallback
    page_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class SentimentResultRow(Base):
    """Sentiment toward one entity in one raw answer."""

    __tablename__ = "sentiment_results"

    record_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    entity: Mapped[str] = mapped_column(String(255), primary_key=True)
    label: Mapped[str] = mapped_column(String(10), nullable=False)  # POSITIVE | NEGATIVE | NEUTRAL
    score: Mapped[float] = mapped_column(Float, default=0.0)  # -1..1
    score_100: Mapped[int] = mapped_column(Integer, default=50)  # dashboard scale 1..100
    positive_evidence: Mapped[list | None] = mapped_column(JSON, nullable=True)
    negative_evidence: Mapped[list | None] = mapped_column(JSON, nullable=True)
    provider: Mapped[str] = mapped_column(String(30), default="")
    provider_exhausted: Mapped[bool] = mapped_column(Boolean, default=False)

    scored_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
