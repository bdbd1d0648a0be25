"""Consolidated Analysis: products, citation categories and sentiment in one LLM call.

Flow for one record:
  1. Result cache hit on record.id -> return immediately
  2. Resolve citation domains already in the shared domain cache
  3. Prompt once for brand/competitor products, remaining domains, sentiments
  4. Validate the JSON answer, normalize it, write new domains to the cache
  5. Domains the model skipped go through the regular citation classifier

No retries: any failure raises ConsolidatedAnalysisError and the caller
switches the record to the per-component path. Occurrence positions and
visibility/share scores are never computed here.
"""

from __future__ import annotations

import asyncio
import json
import logging

from pydantic import BaseModel, Field, ValidationError

from brandscore.analysis.citation_classifier import AI_CONFIDENCE, CitationClassifier, extract_page_name
from brandscore.analysis.citation_extractor import extract_domain, extract_domains
from brandscore.analysis.llm_json import parse_json_object
from brandscore.analysis.products import MAX_BRAND_PRODUCTS, MAX_COMPETITOR_PRODUCTS, sanitize_products
from brandscore.analysis.sentiment import MAX_EVIDENCE, clamp_score, label_from_score
from brandscore.analysis.types import (
    CitationCategory,
    CitationCategoryLabel,
    ClassificationSource,
    ConsolidatedAnalysisResult,
    EntityProfile,
    RawAnswerRecord,
    SentimentResult,
)
from brandscore.core.errors import ConsolidatedAnalysisError, MalformedResponse, error_kind_of
from brandscore.core.metrics import CONSOLIDATED_RUNS
from brandscore.gateway.types import ProviderRequest
from brandscore.gateway.vendor_adapters import BaseVendorAdapter

logger = logging.getLogger(__name__)

MAX_ANSWER_CHARS = 50_000
PROVIDER_NAME = "consolidated"

# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------


class _ProductsAnswer(BaseModel):
    brand: list = Field(default_factory=list)
    competitors: dict[str, list] = Field(default_factory=dict)


class _CitationAnswer(BaseModel):
    category: str = "Other"
    pageName: str | None = None


class _EntitySentimentAnswer(BaseModel):
    label: str = "NEUTRAL"  # ignored; recomputed from score
    score: float = Field(allow_inf_nan=False)
    positiveSentences: list[str] = Field(default_factory=list)
    negativeSentences: list[str] = Field(default_factory=list)


class _SentimentAnswer(BaseModel):
    brand: _EntitySentimentAnswer
    competitors: dict[str, _EntitySentimentAnswer] = Field(default_factory=dict)


class ConsolidatedAnswer(BaseModel):
    products: _ProductsAnswer = Field(default_factory=_ProductsAnswer)
    citations: dict[str, _CitationAnswer] = Field(default_factory=dict)
    sentiment: _SentimentAnswer


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = "You are an AI assistant analyzing a brand intelligence query response. Respond with valid JSON only."


def build_prompt(
    answer_text: str,
    brand: EntityProfile,
    competitors: list[EntityProfile],
    domains: list[str],
) -> str:
    competitor_names = ", ".join(c.canonical_name for c in competitors) or "None"
    known_products = "\n".join(
        f"- {p.canonical_name}: {', '.join(p.product_names)}" for p in [brand, *competitors] if p.product_names
    ) or "None provided"
    citations = "\n".join(f"{i}. {d}" for i, d in enumerate(domains, start=1)) or "No citations provided"

    text = answer_text
    if len(text) > MAX_ANSWER_CHARS:
        text = text[:MAX_ANSWER_CHARS] + "\n\n[Text truncated to 50,000 characters]"

    return f"""Perform the following tasks.

## TASK 1: Product Extraction

### Brand Products
Extract official products sold by the brand "{brand.canonical_name}".

**Rules:**
1. Include only official products (SKUs, models, variants) that consumers can buy
2. Exclude generics, ingredients, categories, descriptive phrases
3. Exclude competitors and their products
4. Exclude side effects, conditions, benefits, use-cases, features
5. Use both the answer text and your knowledge, but never invent products
6. Maximum {MAX_BRAND_PRODUCTS} products

### Competitor Products
Extract official products for each competitor mentioned in the answer.

**Competitors:** {competitor_names}

**Rules:**
1. Same rules as brand products (official products only)
2. Extract products for each competitor separately
3. Maximum {MAX_COMPETITOR_PRODUCTS} products per competitor

**Already known products:**
{known_products}

## TASK 2: Citation Categorization

Categorize each cited domain into one of these categories:
- **Editorial**: News sites, blogs, media outlets (e.g., techcrunch.com, forbes.com)
- **Corporate**: Company websites, business sites (e.g., uber.com, g2.com)
- **Reference**: Knowledge bases, wikis (e.g., wikipedia.org, stackoverflow.com)
- **UGC**: User-generated content, reviews (e.g., yelp.com, amazon.com)
- **Social**: Social media platforms (e.g., reddit.com, twitter.com, linkedin.com)
- **Institutional**: Educational, government sites (e.g., .edu, .gov domains)

**Domains to categorize:**
{citations}

## TASK 3: Sentiment Analysis

Analyze the sentiment toward "{brand.canonical_name}" and toward each competitor separately.

**Competitors:** {competitor_names}

**Requirements:**
1. Sentiment score: a number from -1.0 (very negative) to 1.0 (very positive); 0 is neutral
2. Up to {MAX_EVIDENCE} clearly positive and {MAX_EVIDENCE} clearly negative sentences about each entity, quoted from the answer

## Answer Text to Analyze:
{text}

---

## OUTPUT FORMAT

Respond with ONLY valid JSON in this exact structure:

{{
  "products": {{
    "brand": ["Product1", "Product2"],
    "competitors": {{"Competitor1": ["Product1"]}}
  }},
  "citations": {{
    "example.com": {{"category": "Editorial|Corporate|Reference|UGC|Social|Institutional", "pageName": "Example Site"}}
  }},
  "sentiment": {{
    "brand": {{"score": 0.0, "positiveSentences": [], "negativeSentences": []}},
    "competitors": {{
      "Competitor1": {{"score": 0.0, "positiveSentences": [], "negativeSentences": []}}
    }}
  }}
}}"""


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


def _lookup(answers: dict, profile: EntityProfile):
    """Find an entity's entry by canonical name or alias, case-insensitively."""
    names = {n.lower() for n in (profile.canonical_name, *profile.aliases)}
    for key, value in answers.items():
        if key.strip().lower() in names:
            return value
    return None


def _to_category(label: str) -> CitationCategoryLabel:
    for candidate in CitationCategoryLabel:
        if candidate.value.lower() == (label or "").strip().lower():
            return candidate
    return CitationCategoryLabel.OTHER


class ConsolidatedAnalyzer:
    """Single-call analysis with an in-process result cache keyed by record id."""

    def __init__(
        self,
        adapter: BaseVendorAdapter,
        classifier: CitationClassifier,
        model: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.1,
        timeout: float = 90.0,
    ):
        self.adapter = adapter
        self.classifier = classifier
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self._results: dict[str, ConsolidatedAnalysisResult] = {}

    def clear(self, record_id: str | None = None) -> None:
        """Evict one record's cached result, or all of them."""
        if record_id is None:
            self._results.clear()
        else:
            self._results.pop(record_id, None)

    def cached(self, record_id: str) -> ConsolidatedAnalysisResult | None:
        return self._results.get(record_id)

    async def analyze(
        self,
        record: RawAnswerRecord,
        brand: EntityProfile,
        competitors: list[EntityProfile],
    ) -> ConsolidatedAnalysisResult:
        hit = self._results.get(record.id)
        if hit is not None:
            CONSOLIDATED_RUNS.labels(status="cache_hit").inc()
            logger.debug("Consolidated cache hit for record %s", record.id)
            return hit

        try:
            result = await self._analyze(record, brand, competitors)
        except ConsolidatedAnalysisError:
            CONSOLIDATED_RUNS.labels(status="failure").inc()
            raise
        except Exception as e:
            CONSOLIDATED_RUNS.labels(status="failure").inc()
            kind = error_kind_of(e)
            logger.warning("Consolidated analysis failed for record %s (%s): %s", record.id, kind.value, e)
            raise ConsolidatedAnalysisError(f"{type(e).__name__}: {e}", kind=kind) from e

        CONSOLIDATED_RUNS.labels(status="success").inc()
        self._results[record.id] = result
        return result

    async def _analyze(
        self,
        record: RawAnswerRecord,
        brand: EntityProfile,
        competitors: list[EntityProfile],
    ) -> ConsolidatedAnalysisResult:
        text = record.answer_text or ""
        domains = extract_domains(text, record.cited_urls)
        result = ConsolidatedAnalysisResult(record_id=record.id)

        if not text.strip() and not domains:
            return result

        # Domains already classified are not sent to the model
        pending: list[str] = []
        for domain in domains:
            known = await self.classifier.cached(domain)
            if known is not None:
                result.citations[domain] = known
            else:
                pending.append(domain)

        request = ProviderRequest(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=build_prompt(text, brand, competitors, pending),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            model=self.model,
        )
        response = await asyncio.wait_for(self.adapter.complete(request, timeout=self.timeout), self.timeout)
        result.tokens_used = response.tokens_used

        answer = self.parse(response.content, vendor=response.vendor)

        # Products, unioned with configured names
        result.products[brand.canonical_name] = self._merge_products(
            brand, answer.products.brand, MAX_BRAND_PRODUCTS
        )
        for competitor in competitors:
            extracted = _lookup(answer.products.competitors, competitor) or []
            result.products[competitor.canonical_name] = self._merge_products(
                competitor, extracted, MAX_COMPETITOR_PRODUCTS
            )

        # Citations
        returned = {extract_domain(k): v for k, v in answer.citations.items() if extract_domain(k)}
        for domain in pending:
            item = returned.get(domain)
            if item is None:
                result.citations[domain] = await self.classifier.classify(domain)
                continue
            category = CitationCategory(
                domain=domain,
                category=_to_category(item.category),
                confidence=AI_CONFIDENCE,
                source=ClassificationSource.AI,
                page_name=(item.pageName or "").strip() or extract_page_name(domain),
            )
            await self.classifier.remember(category)
            result.citations[domain] = category

        # Sentiment; entities the model skipped are left for the caller
        result.sentiments[brand.canonical_name] = self._sentiment(record.id, brand.canonical_name, answer.sentiment.brand)
        for competitor in competitors:
            entry = _lookup(answer.sentiment.competitors, competitor)
            if entry is not None:
                result.sentiments[competitor.canonical_name] = self._sentiment(
                    record.id, competitor.canonical_name, entry
                )

        logger.info(
            "Consolidated analysis for record %s: %d domains (%d sent), %d sentiments, %d tokens",
            record.id,
            len(result.citations),
            len(pending),
            len(result.sentiments),
            result.tokens_used,
        )
        return result

    @staticmethod
    def parse(content: str, vendor: str = "") -> ConsolidatedAnswer:
        data = parse_json_object(content, vendor=vendor)
        try:
            return ConsolidatedAnswer.model_validate(data)
        except ValidationError as e:
            raise MalformedResponse(
                f"Consolidated answer failed validation: {json.dumps(e.errors(include_url=False), default=str)[:300]}",
                vendor=vendor,
                raw=content,
            ) from e

    @staticmethod
    def _merge_products(profile: EntityProfile, extracted: list, limit: int) -> list[str]:
        merged = list(profile.product_names)
        known = {p.lower() for p in merged}
        for product in sanitize_products(extracted, limit):
            if product.lower() not in known:
                known.add(product.lower())
                merged.append(product)
        return merged

    @staticmethod
    def _sentiment(record_id: str, entity: str, answer: _EntitySentimentAnswer) -> SentimentResult:
        score = clamp_score(answer.score)
        return SentimentResult(
            record_id=record_id,
            entity=entity,
            label=label_from_score(score),
            score=score,
            positive_evidence=[s for s in answer.positiveSentences if s.strip()][:MAX_EVIDENCE],
            negative_evidence=[s for s in answer.negativeSentences if s.strip()][:MAX_EVIDENCE],
            provider=PROVIDER_NAME,
        )
