"""Scoring Orchestrator: turns a batch of raw answers into persisted scores.

Per record:
  pending → consolidated_attempted → {consolidated_succeeded | fallback_required}
          → components_run → persisted            (or failed on validation / persist)

  1. Validate the record and resolve its brand / competitor profiles
  2. Try consolidated analysis (one LLM call for products, citations, sentiment)
  3. On failure, run product resolution, citation classification and
     sentiment per component; citations and sentiments run concurrently
  4. Occurrence finding and visibility/share scoring always run locally
  5. Upsert metrics, citation categories and sentiments

Records run concurrently under a semaphore; one record's failure never
affects the others. Sub-operation failures become OperationErrors in the
batch summary instead of exceptions.
"""

from __future__ import annotations

import asyncio
import logging

from brandscore.analysis.citation_classifier import CitationClassifier
from brandscore.analysis.citation_extractor import extract_domains
from brandscore.analysis.consolidated import ConsolidatedAnalyzer
from brandscore.analysis.occurrence import find_occurrences
from brandscore.analysis.products import MAX_BRAND_PRODUCTS, MAX_COMPETITOR_PRODUCTS, ProductResolver
from brandscore.analysis.scoring import build_metric_results
from brandscore.analysis.sentiment import SentimentAnalyzer
from brandscore.analysis.types import (
    BatchSummary,
    CitationCategory,
    ClassificationSource,
    ConsolidatedAnalysisResult,
    EntityProfile,
    OperationError,
    RawAnswerRecord,
    RecordOutcome,
    RecordState,
    SentimentResult,
)
from brandscore.core.errors import (
    ConsolidatedAnalysisError,
    ErrorKind,
    RecordValidationError,
    error_kind_of,
)
from brandscore.core.metrics import RECORDS_SCORED
from brandscore.storage.store import ResultStore

logger = logging.getLogger(__name__)

OP_VALIDATION = "validation"
OP_CONSOLIDATED = "consolidated_analysis"
OP_CITATION = "citation_classification"
OP_SENTIMENT = "sentiment"
OP_PERSIST = "persist"
OP_UNEXPECTED = "score_record"


class ScoringOrchestrator:
    def __init__(
        self,
        profiles: dict[str, EntityProfile] | list[EntityProfile],
        classifier: CitationClassifier,
        sentiment_analyzer: SentimentAnalyzer,
        store: ResultStore,
        consolidated: ConsolidatedAnalyzer | None = None,
        product_resolver: ProductResolver | None = None,
        max_concurrency: int = 8,
    ):
        if isinstance(profiles, dict):
            self.profiles = dict(profiles)
        else:
            self.profiles = {p.canonical_name: p for p in profiles}
        self.classifier = classifier
        self.sentiment_analyzer = sentiment_analyzer
        self.store = store
        self.consolidated = consolidated
        self.product_resolver = product_resolver
        self.max_concurrency = max(1, max_concurrency)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def score_batch(self, records: list[RawAnswerRecord], force: bool = False) -> BatchSummary:
        """Score every record with bounded parallelism and aggregate the outcomes."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _run(record: RawAnswerRecord) -> RecordOutcome | None:
            async with semaphore:
                if not force and record.id and await self.store.has_metrics(record.id):
                    logger.debug("Record %s already scored, skipping", record.id)
                    return None
                return await self.score_record(record)

        logger.info("Scoring batch of %d records (concurrency=%d, force=%s)", len(records), self.max_concurrency, force)
        outcomes = await asyncio.gather(*(_run(r) for r in records), return_exceptions=True)

        summary = BatchSummary()
        for record, outcome in zip(records, outcomes):
            if outcome is None:
                summary.skipped += 1
                RECORDS_SCORED.labels(outcome="skipped").inc()
                continue
            if isinstance(outcome, BaseException):
                logger.error("Unexpected error scoring record %s: %s", record.id, outcome, extra={"record_id": record.id})
                outcome = RecordOutcome(
                    record_id=record.id,
                    state=RecordState.FAILED,
                    errors=[OperationError(record.id, OP_UNEXPECTED, error_kind_of(outcome), str(outcome))],
                )
            summary.processed += 1
            if outcome.succeeded:
                summary.succeeded += 1
            summary.per_operation_errors.extend(outcome.errors)
            summary.outcomes.append(outcome)
            RECORDS_SCORED.labels(outcome="succeeded" if outcome.succeeded else "failed").inc()

        logger.info(
            "Batch done: %d processed, %d succeeded, %d skipped, %d operation errors",
            summary.processed,
            summary.succeeded,
            summary.skipped,
            len(summary.per_operation_errors),
        )
        return summary

    # ------------------------------------------------------------------
    # Single record
    # ------------------------------------------------------------------

    def _resolve_profiles(self, record: RawAnswerRecord) -> tuple[EntityProfile, list[EntityProfile]]:
        record.validate()
        brand = self.profiles.get(record.brand_ref)
        if brand is None:
            raise RecordValidationError(f"Unknown brand profile: {record.brand_ref}")
        competitors = []
        for ref in record.competitor_refs:
            competitor = self.profiles.get(ref)
            if competitor is None:
                raise RecordValidationError(f"Unknown competitor profile: {ref}")
            competitors.append(competitor)
        return brand, competitors

    async def score_record(self, record: RawAnswerRecord) -> RecordOutcome:
        outcome = RecordOutcome(record_id=record.id)
        log_extra = {"record_id": record.id}

        try:
            brand, competitors = self._resolve_profiles(record)
        except RecordValidationError as e:
            logger.warning("Rejected record %s: %s", record.id, e, extra=log_extra)
            outcome.state = RecordState.FAILED
            outcome.errors.append(OperationError(record.id, OP_VALIDATION, ErrorKind.VALIDATION_ERROR, str(e)))
            return outcome

        text = record.answer_text or ""
        entities = [brand, *competitors]

        # --- Consolidated attempt ---
        analysis: ConsolidatedAnalysisResult | None = None
        if self.consolidated is not None:
            outcome.state = RecordState.CONSOLIDATED_ATTEMPTED
            try:
                analysis = await self.consolidated.analyze(record, brand, competitors)
                outcome.state = RecordState.CONSOLIDATED_SUCCEEDED
                outcome.used_consolidated = True
            except ConsolidatedAnalysisError as e:
                logger.warning("Consolidated analysis failed for %s, using fallback: %s", record.id, e, extra=log_extra)
                outcome.state = RecordState.FALLBACK_REQUIRED
                outcome.errors.append(OperationError(record.id, OP_CONSOLIDATED, e.kind, str(e)))
        else:
            outcome.state = RecordState.FALLBACK_REQUIRED

        # --- Products ---
        if analysis is not None:
            entities = [p.with_products(analysis.products.get(p.canonical_name, [])) for p in entities]
        elif self.product_resolver is not None:
            limits = [MAX_BRAND_PRODUCTS] + [MAX_COMPETITOR_PRODUCTS] * len(competitors)
            resolved = await asyncio.gather(
                *(self.product_resolver.resolve(p, text, limit) for p, limit in zip(entities, limits))
            )
            entities = [p.with_products(products) for p, products in zip(entities, resolved)]

        # --- Positions and scores (always local) ---
        brand_set = find_occurrences(text, entities[0])
        competitor_sets = [find_occurrences(text, p) for p in entities[1:]]
        outcome.metrics = build_metric_results(record.id, brand_set, competitor_sets)

        # --- Citations and sentiment ---
        domains = extract_domains(text, record.cited_urls)
        outcome.citations, outcome.sentiments = await asyncio.gather(
            self._citations(domains, analysis),
            self._sentiments(record.id, text, entities, analysis),
        )
        outcome.state = RecordState.COMPONENTS_RUN
        outcome.errors.extend(self._degradations(record.id, outcome.citations, outcome.sentiments))

        # --- Persist ---
        # Metrics go last: their presence marks the record as fully scored
        try:
            for category in outcome.citations:
                await self.store.upsert_citation(category)
            for sentiment in outcome.sentiments:
                await self.store.upsert_sentiment(sentiment)
            for metric in outcome.metrics:
                await self.store.upsert_metric(metric)
        except Exception as e:
            logger.error("Failed to persist record %s: %s", record.id, e, extra=log_extra)
            outcome.state = RecordState.FAILED
            outcome.errors.append(OperationError(record.id, OP_PERSIST, error_kind_of(e), str(e)))
            return outcome

        outcome.state = RecordState.PERSISTED
        outcome.succeeded = True
        logger.info(
            "Scored record %s: %d entities, %d domains, consolidated=%s",
            record.id,
            len(outcome.metrics),
            len(outcome.citations),
            outcome.used_consolidated,
            extra=log_extra,
        )
        return outcome

    async def _citations(
        self, domains: list[str], analysis: ConsolidatedAnalysisResult | None
    ) -> list[CitationCategory]:
        if analysis is None:
            return await self.classifier.classify_many(domains)
        missing = [d for d in domains if d not in analysis.citations]
        classified = {c.domain: c for c in await self.classifier.classify_many(missing)} if missing else {}
        return [analysis.citations.get(d) or classified[d] for d in domains]

    async def _sentiments(
        self,
        record_id: str,
        text: str,
        entities: list[EntityProfile],
        analysis: ConsolidatedAnalysisResult | None,
    ) -> list[SentimentResult]:
        provided = analysis.sentiments if analysis is not None else {}

        async def _one(profile: EntityProfile) -> SentimentResult:
            existing = provided.get(profile.canonical_name)
            if existing is not None:
                return existing
            return await self.sentiment_analyzer.analyze(record_id, text, profile.canonical_name)

        return list(await asyncio.gather(*(_one(p) for p in entities)))

    def _degradations(
        self,
        record_id: str,
        citations: list[CitationCategory],
        sentiments: list[SentimentResult],
    ) -> list[OperationError]:
        errors = []
        for category in citations:
            if category.source is not ClassificationSource.HEURISTIC_FALLBACK:
                continue
            failure = self.classifier.failures.get(category.domain)
            errors.append(
                OperationError(
                    record_id,
                    OP_CITATION,
                    error_kind_of(failure) if failure is not None else ErrorKind.PROVIDER_UNAVAILABLE,
                    f"{category.domain}: {failure or 'no classification tier answered'}",
                )
            )
        for sentiment in sentiments:
            if sentiment.provider_exhausted:
                errors.append(
                    OperationError(
                        record_id,
                        OP_SENTIMENT,
                        sentiment.error_kind or ErrorKind.PROVIDER_UNAVAILABLE,
                        f"{sentiment.entity}: all sentiment providers failed",
                    )
                )
        return errors
