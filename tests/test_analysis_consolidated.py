"""Tests for the single-call consolidated analysis."""

import json

import pytest
from conftest import ScriptedAdapter

from brandscore.analysis.citation_classifier import CitationClassifier
from brandscore.analysis.consolidated import ConsolidatedAnalyzer, build_prompt
from brandscore.analysis.types import (
    CitationCategory,
    CitationCategoryLabel,
    ClassificationSource,
    RawAnswerRecord,
    SentimentLabel,
)
from brandscore.core.errors import ConsolidatedAnalysisError, ErrorKind, ProviderUnavailable

ANSWER = (
    "Acme is the best choice. Globex Corp is slow. "
    "See [wiki](https://en.wikipedia.org/wiki/Acme) and https://technews.io/review"
)


def _record(answer_text=ANSWER, cited_urls=("https://www.acme.com/pro",), record_id="r1") -> RawAnswerRecord:
    return RawAnswerRecord(
        id=record_id,
        answer_text=answer_text,
        cited_urls=cited_urls,
        brand_ref="Acme",
        competitor_refs=("Globex",),
    )


def _answer(**overrides) -> str:
    payload = {
        "products": {
            "brand": ["Acme Rocket (new)", "acme pro", "Acme Max - flagship model"],
            "competitors": {"globex": ["Globex One"]},
        },
        "citations": {
            "www.acme.com": {"category": "Corporate", "pageName": "Acme Inc"},
            "technews.io": {"category": "Editorial", "pageName": "Tech News"},
        },
        "sentiment": {
            "brand": {
                "label": "NEGATIVE",
                "score": 0.7,
                "positiveSentences": ["Acme is the best choice."],
                "negativeSentences": [],
            },
            "competitors": {"Globex Corp": {"score": -0.4, "negativeSentences": ["Globex Corp is slow."]}},
        },
    }
    payload.update(overrides)
    return json.dumps(payload)


def _domains_section(prompt: str) -> str:
    return prompt.split("**Domains to categorize:**")[1].split("## TASK 3")[0]


class TestBuildPrompt:
    def test_lists_entities_and_domains(self, acme, globex):
        prompt = build_prompt("Acme rocks", acme, [globex], ["acme.com", "yelp.com"])

        assert '"Acme"' in prompt
        assert "Globex" in prompt
        assert "- Acme: Acme Pro" in prompt
        assert "1. acme.com\n2. yelp.com" in _domains_section(prompt)

    def test_long_answer_truncated(self, acme):
        prompt = build_prompt("x" * 60_000, acme, [], [])

        assert "x" * 50_000 in prompt
        assert "x" * 50_001 not in prompt
        assert "[Text truncated to 50,000 characters]" in prompt

    def test_no_domains(self, acme):
        assert "No citations provided" in build_prompt("Acme", acme, [], [])


class TestConsolidatedAnalyzer:
    @pytest.mark.asyncio
    async def test_full_result(self, acme, globex):
        classifier = CitationClassifier()
        adapter = ScriptedAdapter(_answer())
        analyzer = ConsolidatedAnalyzer(adapter, classifier)

        result = await analyzer.analyze(_record(), acme, [globex])

        assert result.record_id == "r1"
        assert result.tokens_used == 120
        assert adapter.calls == 1

        # configured names first, sanitized and de-duplicated extras after
        assert result.products["Acme"] == ["Acme Pro", "Acme Rocket", "Acme Max"]
        assert result.products["Globex"] == ["Globex One"]

        corporate = result.citations["acme.com"]
        assert corporate.category == CitationCategoryLabel.CORPORATE
        assert corporate.source == ClassificationSource.AI
        assert corporate.confidence == 0.8
        assert corporate.page_name == "Acme Inc"
        assert result.citations["technews.io"].category == CitationCategoryLabel.EDITORIAL

        brand = result.sentiments["Acme"]
        assert brand.label == SentimentLabel.POSITIVE  # from the score, not the model's label
        assert brand.score == 0.7
        assert brand.provider == "consolidated"
        assert brand.positive_evidence == ["Acme is the best choice."]
        assert result.sentiments["Globex"].label == SentimentLabel.NEGATIVE

    @pytest.mark.asyncio
    async def test_new_domains_written_to_shared_cache(self, acme, globex):
        classifier = CitationClassifier()
        analyzer = ConsolidatedAnalyzer(ScriptedAdapter(_answer()), classifier)

        await analyzer.analyze(_record(), acme, [globex])

        cached = await classifier.cached("acme.com")
        assert cached is not None
        assert cached.category == CitationCategoryLabel.CORPORATE
        assert cached.source == ClassificationSource.CACHE

    @pytest.mark.asyncio
    async def test_cached_domains_not_sent(self, acme, globex):
        classifier = CitationClassifier()
        await classifier.remember(
            CitationCategory(
                domain="en.wikipedia.org",
                category=CitationCategoryLabel.REFERENCE,
                confidence=0.6,
                source=ClassificationSource.HEURISTIC,
            )
        )
        adapter = ScriptedAdapter(_answer())

        result = await ConsolidatedAnalyzer(adapter, classifier).analyze(_record(), acme, [globex])

        domains = _domains_section(adapter.requests[0].user_prompt)
        assert "en.wikipedia.org" not in domains
        assert "acme.com" in domains
        assert "technews.io" in domains
        assert result.citations["en.wikipedia.org"].source == ClassificationSource.CACHE

    @pytest.mark.asyncio
    async def test_skipped_domain_goes_through_classifier(self, acme, globex):
        adapter = ScriptedAdapter(_answer(citations={"acme.com": {"category": "Corporate"}}))

        result = await ConsolidatedAnalyzer(adapter, CitationClassifier()).analyze(_record(), acme, [globex])

        assert result.citations["technews.io"].source == ClassificationSource.HEURISTIC
        assert result.citations["technews.io"].category == CitationCategoryLabel.EDITORIAL
        assert result.citations["acme.com"].page_name == "Acme"

    @pytest.mark.asyncio
    async def test_unknown_category_becomes_other(self, acme, globex):
        adapter = ScriptedAdapter(_answer(citations={"acme.com": {"category": "Marketplace"}}))

        result = await ConsolidatedAnalyzer(adapter, CitationClassifier()).analyze(_record(), acme, [globex])

        assert result.citations["acme.com"].category == CitationCategoryLabel.OTHER

    @pytest.mark.asyncio
    async def test_skipped_competitor_sentiment_left_out(self, acme, globex):
        sentiment = {"brand": {"score": -0.2}}
        adapter = ScriptedAdapter(_answer(sentiment=sentiment))

        result = await ConsolidatedAnalyzer(adapter, CitationClassifier()).analyze(_record(), acme, [globex])

        assert set(result.sentiments) == {"Acme"}
        assert result.sentiments["Acme"].label == SentimentLabel.NEGATIVE

    @pytest.mark.asyncio
    async def test_result_cached_per_record(self, acme, globex):
        adapter = ScriptedAdapter(_answer())
        analyzer = ConsolidatedAnalyzer(adapter, CitationClassifier())

        first = await analyzer.analyze(_record(), acme, [globex])
        second = await analyzer.analyze(_record(), acme, [globex])

        assert second is first
        assert adapter.calls == 1
        assert analyzer.cached("r1") is first

    @pytest.mark.asyncio
    async def test_clear_forces_new_call(self, acme, globex):
        adapter = ScriptedAdapter(_answer())
        analyzer = ConsolidatedAnalyzer(adapter, CitationClassifier())

        await analyzer.analyze(_record(), acme, [globex])
        analyzer.clear("r1")
        await analyzer.analyze(_record(), acme, [globex])

        assert adapter.calls == 2

    @pytest.mark.asyncio
    async def test_malformed_json(self, acme, globex):
        analyzer = ConsolidatedAnalyzer(ScriptedAdapter("Sure! Here is the analysis..."), CitationClassifier())

        with pytest.raises(ConsolidatedAnalysisError) as exc_info:
            await analyzer.analyze(_record(), acme, [globex])

        assert exc_info.value.kind == ErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_missing_brand_sentiment_is_malformed(self, acme, globex):
        adapter = ScriptedAdapter(_answer(sentiment={"competitors": {}}))
        analyzer = ConsolidatedAnalyzer(adapter, CitationClassifier())

        with pytest.raises(ConsolidatedAnalysisError) as exc_info:
            await analyzer.analyze(_record(), acme, [globex])

        assert exc_info.value.kind == ErrorKind.MALFORMED_RESPONSE
        assert analyzer.cached("r1") is None

    @pytest.mark.asyncio
    async def test_non_finite_sentiment_is_malformed(self, acme, globex):
        adapter = ScriptedAdapter(_answer(sentiment={"brand": {"score": float("nan")}}))
        analyzer = ConsolidatedAnalyzer(adapter, CitationClassifier())

        with pytest.raises(ConsolidatedAnalysisError) as exc_info:
            await analyzer.analyze(_record(), acme, [globex])

        assert exc_info.value.kind == ErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_provider_failure_not_retried(self, acme, globex):
        adapter = ScriptedAdapter(ProviderUnavailable("rate limited", vendor="openrouter", status_code=429))
        analyzer = ConsolidatedAnalyzer(adapter, CitationClassifier())

        with pytest.raises(ConsolidatedAnalysisError) as exc_info:
            await analyzer.analyze(_record(), acme, [globex])

        assert exc_info.value.kind == ErrorKind.PROVIDER_UNAVAILABLE
        assert adapter.calls == 1

    @pytest.mark.asyncio
    async def test_failures_not_cached(self, acme, globex):
        adapter = ScriptedAdapter(ProviderUnavailable("down"), _answer())
        analyzer = ConsolidatedAnalyzer(adapter, CitationClassifier())

        with pytest.raises(ConsolidatedAnalysisError):
            await analyzer.analyze(_record(), acme, [globex])
        result = await analyzer.analyze(_record(), acme, [globex])

        assert adapter.calls == 2
        assert result.sentiments["Acme"].score == 0.7

    @pytest.mark.asyncio
    async def test_blank_record_makes_no_call(self, acme, globex):
        adapter = ScriptedAdapter(_answer())

        result = await ConsolidatedAnalyzer(adapter, CitationClassifier()).analyze(
            _record(answer_text="", cited_urls=()), acme, [globex]
        )

        assert adapter.calls == 0
        assert result.products == {}
        assert result.citations == {}
        assert result.sentiments == {}
