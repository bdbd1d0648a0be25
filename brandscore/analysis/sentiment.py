"""Sentiment Analyzer: entity sentiment through a prioritized provider chain.

Each provider exposes the same capability, analyze(text, entity), and raises
ProviderUnavailable / MalformedResponse when it cannot answer. The analyzer
walks the chain with a hard timeout per provider; the first success wins.

Providers:
  - LlmSentimentProvider: whole text through any chat adapter, JSON answer
  - ChunkedClassifierProvider: legacy Hugging Face classifier with a small
    input limit; the text is split into groups of <= 12 sentences and the
    chunk scores are averaged
  - LexiconSentimentProvider: offline keyword heuristic, never unavailable

Labels always come from the score: > 0.15 POSITIVE, < -0.15 NEGATIVE.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from pydantic import BaseModel, Field, ValidationError

from brandscore.analysis.llm_json import parse_json_object
from brandscore.analysis.types import SentimentLabel, SentimentResult
from brandscore.core.errors import ErrorKind, MalformedResponse, ProviderUnavailable, error_kind_of
from brandscore.gateway.types import ProviderRequest
from brandscore.gateway.vendor_adapters import DEFAULT_TIMEOUT, BaseVendorAdapter, HuggingFaceClassifier

logger = logging.getLogger(__name__)

POSITIVE_THRESHOLD = 0.15
NEGATIVE_THRESHOLD = -0.15
EVIDENCE_THRESHOLD = 0.3
MAX_EVIDENCE = 3
MAX_SENTENCES_PER_CHUNK = 12
MAX_WORDS_PER_CALL = 200  # keeps one classifier call under ~512 model tokens
MAX_LLM_WORDS = 50_000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def clamp_score(score: float) -> float:
    """Bound a score to [-1.0, 1.0]. NaN and infinities are a malformed answer."""
    if not math.isfinite(score):
        raise MalformedResponse(f"Non-finite sentiment score {score!r}")
    return max(-1.0, min(1.0, score))


def label_from_score(score: float) -> SentimentLabel:
    if score > POSITIVE_THRESHOLD:
        return SentimentLabel.POSITIVE
    if score < NEGATIVE_THRESHOLD:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


_SENTENCE_SPLIT = re.compile(r"(?<=[.?!])\s+")


def split_sentences(text: str | None) -> list[str]:
    if not text:
        return []
    flat = re.sub(r"\r?\n+", " ", text)
    return [s.strip() for s in _SENTENCE_SPLIT.split(flat) if s.strip()]


def focus_text(text: str | None, entity: str) -> str:
    """Sentences that mention the entity, or the whole text when none do."""
    if not text:
        return ""
    name = entity.strip().lower()
    if not name:
        return text
    focused = [s for s in split_sentences(text) if name in s.lower()]
    return " ".join(focused) if focused else text


def truncate_words(text: str, limit: int) -> str:
    words = text.split()
    if len(words) <= limit:
        return text
    return " ".join(words[:limit])


def _cap(items: list[str]) -> list[str]:
    seen: list[str] = []
    for item in items:
        item = str(item).strip()
        if item and item not in seen:
            seen.append(item)
        if len(seen) == MAX_EVIDENCE:
            break
    return seen


@dataclass
class ProviderSentiment:
    """Raw answer of one provider before labelling."""

    score: float = 0.0
    positive_evidence: list[str] = field(default_factory=list)
    negative_evidence: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class SentimentProvider(ABC):
    name: str = ""
    timeout: float | None = None  # None = analyzer default

    @abstractmethod
    async def analyze(self, text: str, entity: str) -> ProviderSentiment: ...


class _LlmSentimentAnswer(BaseModel):
    label: str = "NEUTRAL"
    score: float = Field(default=0.0, allow_inf_nan=False)
    positiveSentences: list[str] = Field(default_factory=list)
    negativeSentences: list[str] = Field(default_factory=list)


SENTIMENT_SYSTEM_PROMPT = "You are a sentiment analysis expert. Always respond with valid JSON only, no explanations."

SENTIMENT_PROMPT_TEMPLATE = """Analyze the sentiment toward "{entity}" in the following text and provide:
1. Overall sentiment label: POSITIVE, NEGATIVE, or NEUTRAL
2. Sentiment score: -1.0 (very negative) to 1.0 (very positive); use granular values like 0.23 or -0.45
3. List of positive sentences about {entity}
4. List of negative sentences about {entity}

Text to analyze:
{text}

Respond with ONLY valid JSON in this exact format:
{{
  "label": "POSITIVE|NEGATIVE|NEUTRAL",
  "score": -1.0 to 1.0,
  "positiveSentences": ["sentence 1", "sentence 2"],
  "negativeSentences": ["sentence 1", "sentence 2"]
}}"""


class LlmSentimentProvider(SentimentProvider):
    """Full-text sentiment through any chat-completion adapter."""

    def __init__(
        self,
        adapter: BaseVendorAdapter,
        name: str = "",
        model: str = "",
        max_tokens: int = 2000,
        temperature: float = 0.1,
        timeout: float | None = None,
    ):
        self.adapter = adapter
        self.name = name or adapter.vendor.value
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    async def analyze(self, text: str, entity: str) -> ProviderSentiment:
        request = ProviderRequest(
            system_prompt=SENTIMENT_SYSTEM_PROMPT,
            user_prompt=SENTIMENT_PROMPT_TEMPLATE.format(entity=entity, text=truncate_words(text, MAX_LLM_WORDS)),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            model=self.model,
        )
        response = await self.adapter.complete(request, timeout=self.timeout or DEFAULT_TIMEOUT)

        data = parse_json_object(response.content, vendor=self.name)
        try:
            answer = _LlmSentimentAnswer.model_validate(data)
        except ValidationError as e:
            raise MalformedResponse(
                f"Invalid sentiment JSON from {self.name}: {e.error_count()} errors",
                vendor=self.name,
                raw=response.content,
            ) from e

        return ProviderSentiment(
            score=clamp_score(answer.score),
            positive_evidence=answer.positiveSentences,
            negative_evidence=answer.negativeSentences,
        )


def normalize_classifier_score(label: str, score: float) -> float:
    """Signed score from a (label, confidence) pair: NEG -> -score, POS -> +score."""
    upper = label.upper()
    if "NEG" in upper:
        return -abs(score)
    if "POS" in upper:
        return abs(score)
    return 0.0


class ChunkedClassifierProvider(SentimentProvider):
    """Legacy text classifier with a per-call length limit."""

    name = "huggingface"

    def __init__(
        self,
        classifier: HuggingFaceClassifier,
        max_sentences: int = MAX_SENTENCES_PER_CHUNK,
        timeout: float | None = None,
        call_timeout: float = DEFAULT_TIMEOUT,
    ):
        self.classifier = classifier
        self.max_sentences = max_sentences
        self.timeout = timeout
        self.call_timeout = call_timeout

    def chunk(self, text: str) -> list[str]:
        """Group sentences into chunks of at most max_sentences each."""
        sentences = split_sentences(text)
        chunks = []
        for i in range(0, len(sentences), self.max_sentences):
            group = " ".join(sentences[i : i + self.max_sentences])
            chunks.append(truncate_words(group, MAX_WORDS_PER_CALL))
        return chunks

    async def analyze(self, text: str, entity: str) -> ProviderSentiment:
        focused = focus_text(text, entity)
        chunks = self.chunk(focused)
        if not chunks:
            return ProviderSentiment()

        scores = []
        for chunk in chunks:
            label, confidence = await self.classifier.classify(chunk, timeout=self.call_timeout)
            scores.append(normalize_classifier_score(label, confidence))
        score = clamp_score(sum(scores) / len(scores))

        positive, negative = await self._sentence_evidence(split_sentences(focused)[: self.max_sentences])
        return ProviderSentiment(score=score, positive_evidence=positive, negative_evidence=negative)

    async def _sentence_evidence(self, sentences: list[str]) -> tuple[list[str], list[str]]:
        positive: list[str] = []
        negative: list[str] = []
        for sentence in sentences:
            if len(positive) >= MAX_EVIDENCE and len(negative) >= MAX_EVIDENCE:
                break
            try:
                label, confidence = await self.classifier.classify(
                    truncate_words(sentence, MAX_WORDS_PER_CALL), timeout=self.call_timeout
                )
            except (ProviderUnavailable, MalformedResponse) as e:
                # Evidence is optional; the overall score already stands
                logger.debug("Skipping evidence sentence: %s", e)
                continue
            value = normalize_classifier_score(label, confidence)
            if value >= EVIDENCE_THRESHOLD:
                positive.append(sentence)
            elif value <= -EVIDENCE_THRESHOLD:
                negative.append(sentence)
        return positive, negative


_POSITIVE_WORDS = {
    "best",
    "excellent",
    "reliable",
    "convenient",
    "fast",
    "recommend",
    "recommended",
    "popular",
    "quality",
    "safe",
    "leader",
    "top",
    "superior",
    "ideal",
    "great",
    "outstanding",
    "trusted",
    "leading",
    "love",
    "affordable",
}

_NEGATIVE_WORDS = {
    "worst",
    "bad",
    "slow",
    "expensive",
    "unreliable",
    "problem",
    "problems",
    "disadvantage",
    "disadvantages",
    "drawback",
    "drawbacks",
    "dangerous",
    "risky",
    "outdated",
    "complex",
    "difficult",
    "poor",
    "issue",
    "issues",
    "complaint",
    "complaints",
    "overpriced",
}

_WORD_RE = re.compile(r"[^\W_]+", re.UNICODE)


def lexicon_score(text: str) -> float:
    """(positive hits - negative hits) / all hits, 0 when no keyword occurs."""
    words = [w.lower() for w in _WORD_RE.findall(text or "")]
    positive_hits = sum(1 for w in words if w in _POSITIVE_WORDS)
    negative_hits = sum(1 for w in words if w in _NEGATIVE_WORDS)
    total = positive_hits + negative_hits
    if total == 0:
        return 0.0
    return round(clamp_score((positive_hits - negative_hits) / total), 2)


class LexiconSentimentProvider(SentimentProvider):
    """Keyword heuristic; offline, so it is a safe last link in a chain."""

    name = "lexicon"

    async def analyze(self, text: str, entity: str) -> ProviderSentiment:
        focused = focus_text(text, entity)
        positive: list[str] = []
        negative: list[str] = []
        for sentence in split_sentences(focused):
            value = lexicon_score(sentence)
            if value >= EVIDENCE_THRESHOLD:
                positive.append(sentence)
            elif value <= -EVIDENCE_THRESHOLD:
                negative.append(sentence)
        return ProviderSentiment(score=lexicon_score(focused), positive_evidence=positive, negative_evidence=negative)


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class SentimentAnalyzer:
    """Walk the provider chain for one (record, entity) pair."""

    def __init__(self, providers: list[SentimentProvider], timeout: float = DEFAULT_TIMEOUT):
        self.providers = providers
        self.timeout = timeout

    async def analyze(self, record_id: str, text: str | None, entity: str) -> SentimentResult:
        if not text or not text.strip():
            return SentimentResult(record_id=record_id, entity=entity)

        error_kind = ErrorKind.PROVIDER_UNAVAILABLE
        for provider in self.providers:
            timeout = provider.timeout or self.timeout
            log_extra = {"record_id": record_id, "entity": entity, "vendor": provider.name}
            try:
                raw = await asyncio.wait_for(provider.analyze(text, entity), timeout)
                score = clamp_score(raw.score)
            except asyncio.TimeoutError:
                logger.warning("Sentiment provider %s timed out after %ss", provider.name, timeout, extra=log_extra)
                error_kind = ErrorKind.PROVIDER_UNAVAILABLE
                continue
            except Exception as e:
                logger.warning("Sentiment provider %s failed: %s", provider.name, e, extra=log_extra)
                error_kind = error_kind_of(e)
                continue

            return SentimentResult(
                record_id=record_id,
                entity=entity,
                label=label_from_score(score),
                score=score,
                positive_evidence=_cap(raw.positive_evidence),
                negative_evidence=_cap(raw.negative_evidence),
                provider=provider.name,
            )

        logger.error("All %d sentiment providers failed for record %s / %s", len(self.providers), record_id, entity)
        return SentimentResult(record_id=record_id, entity=entity, provider_exhausted=True, error_kind=error_kind)
