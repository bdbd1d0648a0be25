"""Citation Classifier: tiered domain → category resolution.

Tiers, first answer wins:
  1. Cache:     any earlier non-fallback result for the domain
  2. Hardcoded: exact-domain table of well-known sites (confidence 1.0)
  3. Heuristic: suffix/substring rules (confidence 0.6)
  4. AI:        single-domain LLM call (confidence 0.8)

Every non-cache answer is written back to the cache. A tier that raises
(an unreachable cache, a failed AI call) is skipped and the next tier is
tried. When no tier answers the domain is returned as Other / confidence 0 /
source "heuristic-fallback" and is NOT cached, so a later run can retry it.
Cache writes are best-effort.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from brandscore.analysis.cache import Cache, InMemoryCache
from brandscore.analysis.citation_extractor import extract_domain
from brandscore.analysis.types import CitationCategory, CitationCategoryLabel, ClassificationSource
from brandscore.core.errors import MalformedResponse
from brandscore.core.metrics import CLASSIFICATION_TIER_HITS
from brandscore.gateway.types import ProviderRequest
from brandscore.gateway.vendor_adapters import DEFAULT_TIMEOUT, BaseVendorAdapter

logger = logging.getLogger(__name__)

__all__ = [
    "HARDCODED_DOMAIN_CATEGORIES",
    "CitationClassifier",
    "ClassificationTier",
    "CacheTier",
    "HardcodedTier",
    "HeuristicTier",
    "AiTier",
    "extract_domain",
    "extract_page_name",
    "parse_category",
]

HARDCODED_CONFIDENCE = 1.0
AI_CONFIDENCE = 0.8
HEURISTIC_CONFIDENCE = 0.6

_C = CitationCategoryLabel

# domain -> (category, page name). Exact domains only; subdomains go to the heuristics.
HARDCODED_DOMAIN_CATEGORIES: dict[str, tuple[CitationCategoryLabel, str]] = {
    # Social
    "reddit.com": (_C.SOCIAL, "Reddit"),
    "twitter.com": (_C.SOCIAL, "Twitter"),
    "x.com": (_C.SOCIAL, "X (Twitter)"),
    "facebook.com": (_C.SOCIAL, "Facebook"),
    "linkedin.com": (_C.SOCIAL, "LinkedIn"),
    "instagram.com": (_C.SOCIAL, "Instagram"),
    "tiktok.com": (_C.SOCIAL, "TikTok"),
    "youtube.com": (_C.SOCIAL, "YouTube"),
    "pinterest.com": (_C.SOCIAL, "Pinterest"),
    # Editorial
    "techcrunch.com": (_C.EDITORIAL, "TechCrunch"),
    "forbes.com": (_C.EDITORIAL, "Forbes"),
    "medium.com": (_C.EDITORIAL, "Medium"),
    "wired.com": (_C.EDITORIAL, "Wired"),
    "theverge.com": (_C.EDITORIAL, "The Verge"),
    "bbc.com": (_C.EDITORIAL, "BBC"),
    "bbc.co.uk": (_C.EDITORIAL, "BBC"),
    "cnn.com": (_C.EDITORIAL, "CNN"),
    "nytimes.com": (_C.EDITORIAL, "New York Times"),
    "wsj.com": (_C.EDITORIAL, "Wall Street Journal"),
    "reuters.com": (_C.EDITORIAL, "Reuters"),
    "bloomberg.com": (_C.EDITORIAL, "Bloomberg"),
    "theguardian.com": (_C.EDITORIAL, "The Guardian"),
    "vogue.co.uk": (_C.EDITORIAL, "Vogue"),
    "teenvogue.com": (_C.EDITORIAL, "Teen Vogue"),
    # Reference
    "wikipedia.org": (_C.REFERENCE, "Wikipedia"),
    "wikidata.org": (_C.REFERENCE, "Wikidata"),
    "stackoverflow.com": (_C.REFERENCE, "Stack Overflow"),
    "github.com": (_C.REFERENCE, "GitHub"),
    "quora.com": (_C.REFERENCE, "Quora"),
    # Corporate / business directories
    "g2.com": (_C.CORPORATE, "G2"),
    "capterra.com": (_C.CORPORATE, "Capterra"),
    "trustpilot.com": (_C.CORPORATE, "Trustpilot"),
    # Institutional
    "scholar.google.com": (_C.INSTITUTIONAL, "Google Scholar"),
    "pubmed.ncbi.nlm.nih.gov": (_C.INSTITUTIONAL, "PubMed"),
    "archive.org": (_C.INSTITUTIONAL, "Archive"),
    # UGC / marketplaces
    "amazon.com": (_C.UGC, "Amazon"),
    "yelp.com": (_C.UGC, "Yelp"),
    "tripadvisor.com": (_C.UGC, "TripAdvisor"),
}

_TLD_SUFFIXES = (".com", ".org", ".net", ".edu", ".gov", ".co", ".io", ".uk", ".us")


def extract_page_name(domain: str) -> str | None:
    """Readable site name: the table's name, else the title-cased domain stem."""
    domain = extract_domain(domain)
    if not domain:
        return None
    known = HARDCODED_DOMAIN_CATEGORIES.get(domain)
    if known:
        return known[1]
    stem = domain
    # Strip up to two public suffix parts, e.g. "bbc.co.uk" -> "bbc"
    for _ in range(2):
        for suffix in _TLD_SUFFIXES:
            if stem.endswith(suffix) and stem != suffix:
                stem = stem[: -len(suffix)]
                break
    parts = [p for p in stem.split(".") if p]
    return " ".join(p[:1].upper() + p[1:].lower() for p in parts) or None


def parse_category(answer: str) -> CitationCategoryLabel | None:
    """Map a free-text model answer onto the taxonomy (None if unrecognized)."""
    lowered = (answer or "").strip().lower()
    if not lowered:
        return None
    for label in CitationCategoryLabel:
        if label.value.lower() == lowered:
            return label
    for label in CitationCategoryLabel:
        if label is not CitationCategoryLabel.OTHER and label.value.lower() in lowered:
            return label
    return None


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------


class ClassificationTier(ABC):
    """One stage of the classification chain."""

    source: ClassificationSource

    @abstractmethod
    async def classify(self, domain: str) -> CitationCategory | None:
        """Return a category, or None to pass the domain to the next tier."""
        ...


def _cache_key(domain: str) -> str:
    return f"citation:{domain}"


class CacheTier(ClassificationTier):
    source = ClassificationSource.CACHE

    def __init__(self, cache: Cache):
        self.cache = cache

    async def classify(self, domain: str) -> CitationCategory | None:
        stored = await self.cache.get(_cache_key(domain))
        if not stored:
            return None
        cached = CitationCategory.from_dict(stored)
        cached.source = ClassificationSource.CACHE
        return cached

    async def store(self, category: CitationCategory) -> None:
        await self.cache.set(_cache_key(category.domain), category.to_dict())


class HardcodedTier(ClassificationTier):
    source = ClassificationSource.HARDCODED

    def __init__(self, table: dict[str, tuple[CitationCategoryLabel, str]] | None = None):
        self.table = HARDCODED_DOMAIN_CATEGORIES if table is None else table

    async def classify(self, domain: str) -> CitationCategory | None:
        match = self.table.get(domain)
        if match is None:
            return None
        category, page_name = match
        return CitationCategory(
            domain=domain,
            category=category,
            confidence=HARDCODED_CONFIDENCE,
            source=self.source,
            page_name=page_name,
        )


class HeuristicTier(ClassificationTier):
    source = ClassificationSource.HEURISTIC

    @staticmethod
    def match(domain: str) -> CitationCategoryLabel | None:
        if domain.endswith(".edu") or ".edu." in domain:
            return CitationCategoryLabel.INSTITUTIONAL
        if domain.endswith((".gov", ".gov.uk", ".gov.au")) or ".gov." in domain:
            return CitationCategoryLabel.INSTITUTIONAL
        if "university" in domain or domain.startswith("archive."):
            return CitationCategoryLabel.INSTITUTIONAL
        if "wiki" in domain:
            return CitationCategoryLabel.REFERENCE
        if "news" in domain or "blog" in domain or "media" in domain:
            return CitationCategoryLabel.EDITORIAL
        if "review" in domain or "rating" in domain:
            return CitationCategoryLabel.UGC
        return None

    async def classify(self, domain: str) -> CitationCategory | None:
        category = self.match(domain)
        if category is None:
            return None
        return CitationCategory(
            domain=domain,
            category=category,
            confidence=HEURISTIC_CONFIDENCE,
            source=self.source,
            page_name=extract_page_name(domain),
        )


CLASSIFY_SYSTEM_PROMPT = "You categorize websites for a brand-intelligence dashboard. Answer with one word."

CLASSIFY_PROMPT_TEMPLATE = """Categorize the website "{domain}" into one of these categories: Editorial, Corporate, Reference, UGC, Social, or Institutional.

Examples:
- uber.com → Corporate
- reddit.com → Social
- wikipedia.org → Reference
- techcrunch.com → Editorial
- yelp.com → UGC
- harvard.edu → Institutional

Respond with only the category name:"""


class AiTier(ClassificationTier):
    """Single-domain LLM classification. Raises on provider or parse failure."""

    source = ClassificationSource.AI

    def __init__(self, adapter: BaseVendorAdapter, timeout: float = DEFAULT_TIMEOUT, model: str = ""):
        self.adapter = adapter
        self.timeout = timeout
        self.model = model

    async def classify(self, domain: str) -> CitationCategory | None:
        request = ProviderRequest(
            system_prompt=CLASSIFY_SYSTEM_PROMPT,
            user_prompt=CLASSIFY_PROMPT_TEMPLATE.format(domain=domain),
            max_tokens=15,
            temperature=0.0,
            model=self.model,
        )
        response = await asyncio.wait_for(self.adapter.complete(request, timeout=self.timeout), self.timeout)

        category = parse_category(response.content)
        if category is None:
            raise MalformedResponse(
                f"Unrecognized category for {domain}: {response.content.strip()[:50]!r}",
                vendor=response.vendor,
                raw=response.content,
            )
        return CitationCategory(
            domain=domain,
            category=category,
            confidence=AI_CONFIDENCE,
            source=self.source,
            page_name=extract_page_name(domain),
        )


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class CitationClassifier:
    """Runs the tier chain for a domain and keeps the shared domain cache warm."""

    def __init__(self, cache: Cache | None = None, ai_tier: AiTier | None = None):
        self.cache_tier = CacheTier(cache if cache is not None else InMemoryCache())
        self.tiers: list[ClassificationTier] = [self.cache_tier, HardcodedTier(), HeuristicTier()]
        if ai_tier is not None:
            self.tiers.append(ai_tier)
        self.failures: dict[str, Exception] = {}
        self.last_error: Exception | None = None

    async def cached(self, domain: str) -> CitationCategory | None:
        """Look the domain up in the shared cache only; an unreachable cache is a miss."""
        try:
            return await self.cache_tier.classify(extract_domain(domain))
        except Exception as e:
            logger.warning("Citation cache lookup failed for %s: %s", domain, e)
            return None

    async def remember(self, category: CitationCategory) -> None:
        """Write a result into the shared cache (fallback results are ignored).

        A failed write only costs a future cache hit, so it is logged and dropped.
        """
        if category.source in (ClassificationSource.CACHE, ClassificationSource.HEURISTIC_FALLBACK):
            return
        try:
            await self.cache_tier.store(category)
        except Exception as e:
            logger.warning("Could not cache category for %s: %s", category.domain, e)

    async def classify(self, domain: str) -> CitationCategory:
        domain = extract_domain(domain)
        if not domain:
            return self._fallback(domain)

        self.failures.pop(domain, None)
        for tier in self.tiers:
            try:
                result = await tier.classify(domain)
            except Exception as e:
                # The next tier may still answer
                logger.warning(
                    "Citation tier %s failed for %s: %s", tier.source.value, domain, e, extra={"domain": domain}
                )
                self.failures[domain] = e
                self.last_error = e
                continue
            if result is None:
                continue

            CLASSIFICATION_TIER_HITS.labels(source=result.source.value).inc()
            self.failures.pop(domain, None)
            await self.remember(result)
            return result

        # Every tier failed or none matched
        CLASSIFICATION_TIER_HITS.labels(source=ClassificationSource.HEURISTIC_FALLBACK.value).inc()
        return self._fallback(domain)

    async def classify_many(self, domains: list[str]) -> list[CitationCategory]:
        """Classify unique domains concurrently, preserving first-seen order."""
        unique = list(dict.fromkeys(d for d in (extract_domain(x) for x in domains) if d))
        return list(await asyncio.gather(*(self.classify(d) for d in unique)))

    @staticmethod
    def _fallback(domain: str) -> CitationCategory:
        return CitationCategory(
            domain=domain,
            category=CitationCategoryLabel.OTHER,
            confidence=0.0,
            source=ClassificationSource.HEURISTIC_FALLBACK,
            page_name=extract_page_name(domain),
        )
