"""Tests for settings parsing, logging and pipeline wiring."""

import io
import json
import logging

from brandscore.analysis.cache import InMemoryCache, RedisCache
from brandscore.analysis.consolidated import ConsolidatedAnalyzer
from brandscore.analysis.pipeline import build_cache, build_orchestrator, build_sentiment_providers
from brandscore.analysis.sentiment import (
    ChunkedClassifierProvider,
    LexiconSentimentProvider,
    LlmSentimentProvider,
)
from brandscore.core.config import Settings
from brandscore.core.logging import ContextFormatter, JSONFormatter, setup_logging
from brandscore.gateway.vendor_adapters import GeminiAdapter, OpenRouterAdapter
from brandscore.storage.store import InMemoryResultStore


def _settings(**overrides) -> Settings:
    values = {
        "openrouter_api_key": "",
        "openai_api_key": "",
        "gemini_api_key": "",
        "cerebras_api_key": "",
        "huggingface_api_token": "",
        "cache_backend": "memory",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    def test_provider_order_parsed(self):
        s = _settings(sentiment_providers=" Gemini, lexicon ,,huggingface")
        assert s.sentiment_provider_order == ["gemini", "lexicon", "huggingface"]

    def test_api_key_lookup(self):
        s = _settings(gemini_api_key="g-key")
        assert s.api_key_for("gemini") == "g-key"
        assert s.api_key_for("unknown") == ""
        assert s.model_for("cerebras") == "llama3.1-8b"


class TestBuildSentimentProviders:
    def test_vendors_without_keys_skipped(self):
        s = _settings(
            sentiment_providers="cerebras,gemini,huggingface,lexicon",
            gemini_api_key="g-key",
            huggingface_api_token="hf-token",
        )

        providers = build_sentiment_providers(s)

        assert [p.name for p in providers] == ["gemini", "huggingface", "lexicon"]
        assert isinstance(providers[0], LlmSentimentProvider)
        assert isinstance(providers[0].adapter, GeminiAdapter)
        assert isinstance(providers[1], ChunkedClassifierProvider)
        assert isinstance(providers[2], LexiconSentimentProvider)

    def test_unknown_provider_ignored(self):
        assert build_sentiment_providers(_settings(sentiment_providers="mystery")) == []


class TestBuildOrchestrator:
    def test_no_keys(self, acme, globex):
        orchestrator = build_orchestrator(_settings(), InMemoryResultStore(), [acme, globex])

        assert orchestrator.consolidated is None
        assert len(orchestrator.classifier.tiers) == 3  # cache, hardcoded, heuristic
        assert orchestrator.product_resolver.adapter is None
        assert set(orchestrator.profiles) == {"Acme", "Globex"}

    def test_consolidated_wired(self, acme):
        s = _settings(openrouter_api_key="or-key", gemini_api_key="g-key", scoring_concurrency=3)

        orchestrator = build_orchestrator(s, InMemoryResultStore(), [acme])

        assert isinstance(orchestrator.consolidated, ConsolidatedAnalyzer)
        assert isinstance(orchestrator.consolidated.adapter, OpenRouterAdapter)
        assert orchestrator.consolidated.classifier is orchestrator.classifier
        assert orchestrator.consolidated.timeout == 90.0
        assert len(orchestrator.classifier.tiers) == 4
        assert orchestrator.max_concurrency == 3

    def test_consolidated_disabled(self, acme):
        s = _settings(openrouter_api_key="or-key", consolidated_enabled=False)

        orchestrator = build_orchestrator(s, InMemoryResultStore(), [acme])

        assert orchestrator.consolidated is None
        assert isinstance(orchestrator.product_resolver.adapter, OpenRouterAdapter)

    def test_shared_cache(self, acme):
        cache = InMemoryCache()

        orchestrator = build_orchestrator(_settings(), InMemoryResultStore(), [acme], cache=cache)

        assert orchestrator.classifier.cache_tier.cache is cache
        assert orchestrator.product_resolver.cache is cache


class TestBuildCache:
    def test_memory(self):
        assert isinstance(build_cache(_settings()), InMemoryCache)

    def test_redis(self):
        cache = build_cache(_settings(cache_backend="redis", cache_key_prefix="bs-test"))
        assert isinstance(cache, RedisCache)
        assert cache._key("x") == "bs-test:x"


class TestJSONFormatter:
    def test_record_id_included(self):
        record = logging.LogRecord("brandscore.test", logging.WARNING, __file__, 1, "scored %s", ("r1",), None)
        record.record_id = "r1"
        record.operation = "sentiment"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "scored r1"
        assert data["level"] == "WARNING"
        assert data["record_id"] == "r1"
        assert data["operation"] == "sentiment"

    def test_plain_record(self):
        record = logging.LogRecord("brandscore.test", logging.INFO, __file__, 1, "hello", (), None)

        data = json.loads(JSONFormatter().format(record))

        assert "record_id" not in data
        assert data["logger"] == "brandscore.test"

    def test_context_fields_and_timestamp(self):
        record = logging.LogRecord("brandscore.test", logging.INFO, __file__, 1, "tier failed", (), None)
        record.entity = "Acme"
        record.domain = "reddit.com"
        record.vendor = None
        record.created = 0.0

        data = json.loads(JSONFormatter().format(record))

        assert data["entity"] == "Acme"
        assert data["domain"] == "reddit.com"
        assert "vendor" not in data
        assert data["ts"].startswith("1970-01-01T00:00:00")


class TestContextFormatter:
    def test_context_appended(self):
        record = logging.LogRecord(
            "brandscore.test", logging.WARNING, __file__, 1, "provider %s failed", ("gemini",), None
        )
        record.record_id = "r1"
        record.vendor = "gemini"

        line = ContextFormatter().format(record)

        assert line.endswith("brandscore.test: provider gemini failed [record_id=r1 vendor=gemini]")

    def test_no_context(self):
        record = logging.LogRecord("brandscore.test", logging.INFO, __file__, 1, "hello", (), None)

        assert ContextFormatter().format(record).endswith("brandscore.test: hello")


class TestSetupLogging:
    def test_json_handler_installed(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        stream = io.StringIO()
        try:
            handler = setup_logging(level="debug", json_output=True, stream=stream)
            logging.getLogger("brandscore.test").debug("scored", extra={"record_id": "r9"})

            assert root.handlers == [handler]
            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
            assert json.loads(stream.getvalue())["record_id"] == "r9"
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_unknown_level_falls_back_to_info(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            handler = setup_logging(level="chatty", json_output=False, stream=io.StringIO())

            assert root.level == logging.INFO
            assert isinstance(handler.formatter, ContextFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
