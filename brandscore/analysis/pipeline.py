"""Wiring: build a ScoringOrchestrator from Settings.

Providers without an API key are left out of their chain; the remaining
links keep their configured priority.
"""

from __future__ import annotations

import logging

from brandscore.analysis.cache import Cache, InMemoryCache, RedisCache
from brandscore.analysis.citation_classifier import AiTier, CitationClassifier
from brandscore.analysis.consolidated import ConsolidatedAnalyzer
from brandscore.analysis.orchestrator import ScoringOrchestrator
from brandscore.analysis.products import ProductResolver
from brandscore.analysis.sentiment import (
    ChunkedClassifierProvider,
    LexiconSentimentProvider,
    LlmSentimentProvider,
    SentimentAnalyzer,
    SentimentProvider,
)
from brandscore.analysis.types import EntityProfile
from brandscore.core.config import Settings
from brandscore.gateway.types import ProviderVendor
from brandscore.gateway.vendor_adapters import ADAPTER_REGISTRY, HuggingFaceClassifier, get_adapter
from brandscore.storage.store import ResultStore

logger = logging.getLogger(__name__)


def build_cache(settings: Settings) -> Cache:
    if settings.cache_backend == "redis":
        return RedisCache.from_url(settings.redis_url, prefix=settings.cache_key_prefix)
    return InMemoryCache()


def build_sentiment_providers(settings: Settings) -> list[SentimentProvider]:
    providers: list[SentimentProvider] = []
    for name in settings.sentiment_provider_order:
        if name == "lexicon":
            providers.append(LexiconSentimentProvider())
            continue
        key = settings.api_key_for(name)
        if not key:
            logger.info("Sentiment provider %s has no API key, skipping", name)
            continue
        if name == ProviderVendor.HUGGINGFACE.value:
            classifier = HuggingFaceClassifier(key, settings.huggingface_model_url)
            providers.append(
                ChunkedClassifierProvider(
                    classifier,
                    timeout=settings.provider_timeout_seconds * 4,
                    call_timeout=settings.provider_timeout_seconds,
                )
            )
        elif name in {v.value for v in ADAPTER_REGISTRY}:
            adapter = get_adapter(name, key, model=settings.model_for(name))
            providers.append(LlmSentimentProvider(adapter, timeout=settings.provider_timeout_seconds))
        else:
            logger.warning("Unknown sentiment provider %r in SENTIMENT_PROVIDERS, ignoring", name)
    return providers


def build_orchestrator(
    settings: Settings,
    store: ResultStore,
    profiles: list[EntityProfile] | dict[str, EntityProfile],
    cache: Cache | None = None,
) -> ScoringOrchestrator:
    """Assemble classifier, sentiment chain, consolidated analyzer and orchestrator."""
    cache = cache if cache is not None else build_cache(settings)

    ai_tier = None
    classifier_key = settings.api_key_for(settings.classifier_vendor)
    if classifier_key:
        ai_tier = AiTier(
            get_adapter(settings.classifier_vendor, classifier_key, model=settings.classifier_model),
            timeout=settings.provider_timeout_seconds,
        )
    classifier = CitationClassifier(cache=cache, ai_tier=ai_tier)

    sentiment_analyzer = SentimentAnalyzer(
        build_sentiment_providers(settings),
        timeout=settings.provider_timeout_seconds,
    )

    consolidated = None
    product_resolver = ProductResolver(cache=cache)
    consolidated_key = settings.api_key_for(settings.consolidated_vendor)
    if consolidated_key:
        adapter = get_adapter(settings.consolidated_vendor, consolidated_key, model=settings.consolidated_model)
        product_resolver = ProductResolver(adapter, cache=cache, timeout=settings.provider_timeout_seconds)
        if settings.consolidated_enabled:
            consolidated = ConsolidatedAnalyzer(
                adapter,
                classifier,
                max_tokens=settings.consolidated_max_tokens,
                timeout=settings.consolidated_timeout_seconds,
            )

    logger.info(
        "Pipeline ready: consolidated=%s, classifier_ai=%s, sentiment=[%s]",
        consolidated is not None,
        ai_tier is not None,
        ", ".join(p.name for p in sentiment_analyzer.providers),
    )
    return ScoringOrchestrator(
        profiles,
        classifier,
        sentiment_analyzer,
        store,
        consolidated=consolidated,
        product_resolver=product_resolver,
        max_concurrency=settings.scoring_concurrency,
    )
