"""Tests for citation extraction and the tiered citation classifier."""

import pytest
from conftest import DownCache, ScriptedAdapter

from brandscore.analysis.cache import InMemoryCache
from brandscore.analysis.citation_classifier import (
    AiTier,
    CitationClassifier,
    HeuristicTier,
    extract_page_name,
    parse_category,
)
from brandscore.analysis.citation_extractor import (
    extract_cited_urls,
    extract_domain,
    extract_domains,
    get_unique_domains,
)
from brandscore.analysis.types import CitationCategoryLabel, ClassificationSource
from brandscore.core.errors import MalformedResponse, ProviderUnavailable


# ==========================================================================
# Extraction
# ==========================================================================


class TestExtractDomain:
    def test_www_stripped(self):
        assert extract_domain("https://www.example.com/page") == "example.com"

    def test_lowercased(self):
        assert extract_domain("https://WWW.Example.COM/x") == "example.com"

    def test_bare_domain(self):
        assert extract_domain("example.com/page") == "example.com"

    def test_empty(self):
        assert extract_domain("") == ""


class TestExtractCitedUrls:
    def test_markdown_link(self):
        cited = extract_cited_urls("See [Acme](https://www.acme.com/pro) for details.")
        assert len(cited) == 1
        assert cited[0].domain == "acme.com"
        assert cited[0].anchor_text == "Acme"

    def test_native_urls_first(self):
        cited = extract_cited_urls("Visit https://globex.com today", ["https://acme.com/a"])
        assert [c.domain for c in cited] == ["acme.com", "globex.com"]
        assert cited[0].is_native is True
        assert cited[1].is_native is False

    def test_no_duplicate_from_markdown_link(self):
        cited = extract_cited_urls("See [link](https://example.com) or visit https://example.com.")
        assert len(cited) == 1

    def test_footnote_definition(self):
        text = "Acme is popular [1].\n\n[1]: https://news.example.org/acme"
        assert extract_domains(text) == ["news.example.org"]

    def test_unique_domains(self):
        cited = extract_cited_urls("https://a.com/1 https://a.com/2 https://b.com")
        assert get_unique_domains(cited) == ["a.com", "b.com"]

    def test_empty(self):
        assert extract_domains("", []) == []


# ==========================================================================
# Classifier
# ==========================================================================


class TestHelpers:
    def test_page_name_from_table(self):
        assert extract_page_name("bbc.co.uk") == "BBC"

    def test_page_name_from_stem(self):
        assert extract_page_name("example.com") == "Example"
        assert extract_page_name("acme-store.co.uk") == "Acme-store"

    def test_parse_category(self):
        assert parse_category(" social\n") == CitationCategoryLabel.SOCIAL
        assert parse_category("It is UGC.") == CitationCategoryLabel.UGC
        assert parse_category("banana") is None
        assert parse_category("") is None


class TestHeuristicTier:
    @pytest.mark.parametrize(
        "domain,expected",
        [
            ("harvard.edu", CitationCategoryLabel.INSTITUTIONAL),
            ("data.gov.uk", CitationCategoryLabel.INSTITUTIONAL),
            ("en.wikipedia.org", CitationCategoryLabel.REFERENCE),
            ("technews.io", CitationCategoryLabel.EDITORIAL),
            ("acmeblog.net", CitationCategoryLabel.EDITORIAL),
            ("productreviews.net", CitationCategoryLabel.UGC),
        ],
    )
    def test_rules(self, domain, expected):
        assert HeuristicTier.match(domain) == expected

    def test_no_rule(self):
        assert HeuristicTier.match("acme.com") is None


class TestCitationClassifier:
    @pytest.mark.asyncio
    async def test_subdomain_falls_through_to_heuristic(self):
        classifier = CitationClassifier()

        result = await classifier.classify("en.wikipedia.org")

        assert result.category == CitationCategoryLabel.REFERENCE
        assert result.source == ClassificationSource.HEURISTIC
        assert result.confidence == 0.6

    @pytest.mark.asyncio
    async def test_hardcoded_exact_domain(self):
        classifier = CitationClassifier()

        result = await classifier.classify("https://www.wikipedia.org/wiki/Acme")

        assert result.domain == "wikipedia.org"
        assert result.category == CitationCategoryLabel.REFERENCE
        assert result.source == ClassificationSource.HARDCODED
        assert result.confidence == 1.0
        assert result.page_name == "Wikipedia"

    @pytest.mark.asyncio
    async def test_repeat_lookup_served_from_cache(self):
        classifier = CitationClassifier()

        first = await classifier.classify("en.wikipedia.org")
        second = await classifier.classify("en.wikipedia.org")

        assert second.source == ClassificationSource.CACHE
        assert second.category == first.category
        assert second.confidence == first.confidence

    @pytest.mark.asyncio
    async def test_ai_tier(self):
        adapter = ScriptedAdapter("Corporate")
        classifier = CitationClassifier(ai_tier=AiTier(adapter))

        result = await classifier.classify("acme.com")
        again = await classifier.classify("acme.com")

        assert result.category == CitationCategoryLabel.CORPORATE
        assert result.source == ClassificationSource.AI
        assert result.confidence == 0.8
        assert again.source == ClassificationSource.CACHE
        assert adapter.calls == 1
        assert "acme.com" in adapter.requests[0].user_prompt

    @pytest.mark.asyncio
    async def test_ai_failure_degrades_without_caching(self):
        adapter = ScriptedAdapter(ProviderUnavailable("down", vendor="gemini"))
        cache = InMemoryCache()
        classifier = CitationClassifier(cache=cache, ai_tier=AiTier(adapter))

        result = await classifier.classify("acme.com")

        assert result.category == CitationCategoryLabel.OTHER
        assert result.confidence == 0.0
        assert result.source == ClassificationSource.HEURISTIC_FALLBACK
        assert len(cache) == 0
        assert isinstance(classifier.failures["acme.com"], ProviderUnavailable)

        # Not cached, so the next run retries the AI tier
        await classifier.classify("acme.com")
        assert adapter.calls == 2

    @pytest.mark.asyncio
    async def test_unrecognized_ai_answer(self):
        classifier = CitationClassifier(ai_tier=AiTier(ScriptedAdapter("banana")))

        result = await classifier.classify("acme.com")

        assert result.source == ClassificationSource.HEURISTIC_FALLBACK
        assert isinstance(classifier.last_error, MalformedResponse)

    @pytest.mark.asyncio
    async def test_no_ai_tier_configured(self):
        result = await CitationClassifier().classify("acme.com")

        assert result.category == CitationCategoryLabel.OTHER
        assert result.source == ClassificationSource.HEURISTIC_FALLBACK

    @pytest.mark.asyncio
    async def test_heuristic_result_skips_ai(self):
        adapter = ScriptedAdapter("Corporate")
        classifier = CitationClassifier(ai_tier=AiTier(adapter))

        await classifier.classify("harvard.edu")

        assert adapter.calls == 0

    @pytest.mark.asyncio
    async def test_unreachable_cache_falls_through_to_hardcoded(self):
        classifier = CitationClassifier(cache=DownCache())

        result = await classifier.classify("reddit.com")

        assert result.category == CitationCategoryLabel.SOCIAL
        assert result.source == ClassificationSource.HARDCODED
        assert "reddit.com" not in classifier.failures

    @pytest.mark.asyncio
    async def test_unreachable_cache_then_ai(self):
        adapter = ScriptedAdapter("Corporate")
        classifier = CitationClassifier(cache=DownCache(), ai_tier=AiTier(adapter))

        result = await classifier.classify("acme.com")

        assert result.source == ClassificationSource.AI
        assert adapter.calls == 1

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns_result(self):
        classifier = CitationClassifier(cache=DownCache(fail_get=False))

        result = await classifier.classify("reddit.com")

        assert result.category == CitationCategoryLabel.SOCIAL
        assert result.source == ClassificationSource.HARDCODED

    @pytest.mark.asyncio
    async def test_cached_lookup_on_unreachable_cache_is_a_miss(self):
        assert await CitationClassifier(cache=DownCache()).cached("reddit.com") is None

    @pytest.mark.asyncio
    async def test_classify_many_deduplicates(self):
        classifier = CitationClassifier()

        results = await classifier.classify_many(["https://reddit.com/r/acme", "reddit.com", "yelp.com"])

        assert [r.domain for r in results] == ["reddit.com", "yelp.com"]
        assert results[0].category == CitationCategoryLabel.SOCIAL
        assert results[1].category == CitationCategoryLabel.UGC
