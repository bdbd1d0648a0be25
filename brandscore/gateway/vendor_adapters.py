"""Vendor adapters: protocol-level handling for each provider.

Each adapter translates a ProviderRequest into the vendor's HTTP protocol
and returns a ProviderResponse, or raises:
  - ProviderUnavailable on timeout, transport error, 429 or 5xx
  - MalformedResponse on an unreadable payload or empty content

Vendor-specific behaviors:
  - OpenAI / OpenRouter / Cerebras: OpenAI-compatible chat completions
  - Gemini: generateContent, finishReason SAFETY -> MalformedResponse
  - Hugging Face: text-classification inference (label + score), not chat
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import httpx

from brandscore.core.errors import MalformedResponse, ProviderUnavailable
from brandscore.core.metrics import PROVIDER_CALLS, PROVIDER_LATENCY, PROVIDER_TOKENS
from brandscore.gateway.types import ProviderRequest, ProviderResponse, ProviderVendor

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class BaseVendorAdapter(ABC):
    """Base class for all chat-style vendor adapters."""

    vendor: ProviderVendor
    default_model: str = ""

    def __init__(self, api_key: str, model: str = "", **kwargs):
        self.api_key = api_key
        self.model = model or self.default_model

    @abstractmethod
    async def complete(self, request: ProviderRequest, timeout: float = DEFAULT_TIMEOUT) -> ProviderResponse:
        """Send a request to the vendor and return a normalized response."""
        ...

    async def _post(self, url: str, timeout: float, **kwargs) -> dict:
        """POST and decode JSON, mapping transport failures onto the error taxonomy."""
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(url, **kwargs)
        except httpx.TimeoutException as e:
            PROVIDER_CALLS.labels(vendor=self.vendor.value, status="timeout").inc()
            raise ProviderUnavailable(f"{self.vendor.value} timeout after {timeout}s", vendor=self.vendor.value) from e
        except httpx.HTTPError as e:
            PROVIDER_CALLS.labels(vendor=self.vendor.value, status="network_error").inc()
            raise ProviderUnavailable(f"{self.vendor.value} transport error: {e}", vendor=self.vendor.value) from e
        finally:
            PROVIDER_LATENCY.labels(vendor=self.vendor.value).observe(time.monotonic() - start)

        if resp.status_code == 429:
            PROVIDER_CALLS.labels(vendor=self.vendor.value, status="rate_limited").inc()
            raise ProviderUnavailable(f"Rate limited by {self.vendor.value}", vendor=self.vendor.value, status_code=429)

        if resp.status_code >= 400:
            PROVIDER_CALLS.labels(vendor=self.vendor.value, status="vendor_error").inc()
            raise ProviderUnavailable(
                f"{self.vendor.value} HTTP {resp.status_code}: {resp.text[:200]}",
                vendor=self.vendor.value,
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            PROVIDER_CALLS.labels(vendor=self.vendor.value, status="malformed").inc()
            raise MalformedResponse(f"{self.vendor.value} returned non-JSON body", vendor=self.vendor.value) from e

        PROVIDER_CALLS.labels(vendor=self.vendor.value, status="success").inc()
        return data

    def _response(self, content: str, tokens_used: int, model: str, start: float) -> ProviderResponse:
        if not content or not content.strip():
            raise MalformedResponse(f"Empty content from {self.vendor.value}", vendor=self.vendor.value)
        PROVIDER_TOKENS.labels(vendor=self.vendor.value).inc(tokens_used)
        return ProviderResponse(
            content=content,
            tokens_used=tokens_used,
            vendor=self.vendor.value,
            model=model,
            latency_ms=int((time.monotonic() - start) * 1000),
            cost_usd=self._calc_cost(model, tokens_used),
        )

    @staticmethod
    def _calc_cost(model: str, tokens_used: int) -> float:
        return 0.0


# ---------------------------------------------------------------------------
# OpenAI-compatible chat completions (OpenAI, OpenRouter, Cerebras)
# ---------------------------------------------------------------------------

# Blended price per 1M tokens
_CHAT_PRICING = {
    "gpt-4o-mini": 0.30,
    "openai/gpt-4o-mini": 0.30,
    "gpt-4.1-mini": 0.80,
    "llama3.1-8b": 0.10,
}


class OpenAICompatibleAdapter(BaseVendorAdapter):
    """OpenAI Chat Completions protocol."""

    vendor = ProviderVendor.OPENAI
    default_model = "gpt-4o-mini"
    api_url = "https://api.openai.com/v1/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def complete(self, request: ProviderRequest, timeout: float = DEFAULT_TIMEOUT) -> ProviderResponse:
        model = request.model or self.model
        start = time.monotonic()

        payload = {
            "model": model,
            "messages": [],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.system_prompt:
            payload["messages"].append({"role": "system", "content": request.system_prompt})
        payload["messages"].append({"role": "user", "content": request.user_prompt})

        data = await self._post(self.api_url, timeout, json=payload, headers=self._headers())

        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponse(f"Unexpected {self.vendor.value} payload shape", vendor=self.vendor.value) from e

        usage = data.get("usage") or {}
        tokens = usage.get("total_tokens") or (usage.get("prompt_tokens", 0) + usage.get("completion_tokens", 0))
        return self._response(content, tokens, data.get("model", model), start)

    @staticmethod
    def _calc_cost(model: str, tokens_used: int) -> float:
        price = _CHAT_PRICING.get(model, 0.0)
        return round(tokens_used * price / 1_000_000, 6)


class OpenRouterAdapter(OpenAICompatibleAdapter):
    """OpenRouter: OpenAI protocol, routed to the best-throughput provider."""

    vendor = ProviderVendor.OPENROUTER
    default_model = "openai/gpt-4o-mini"
    api_url = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(self, api_key: str, model: str = "", site_url: str = "", site_title: str = "", **kwargs):
        super().__init__(api_key, model, **kwargs)
        self.site_url = site_url
        self.site_title = site_title

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.site_url:
            headers["HTTP-Referer"] = self.site_url
        if self.site_title:
            headers["X-Title"] = self.site_title
        return headers


class CerebrasAdapter(OpenAICompatibleAdapter):
    """Cerebras inference: OpenAI protocol with a high token limit."""

    vendor = ProviderVendor.CEREBRAS
    default_model = "llama3.1-8b"
    api_url = "https://api.cerebras.ai/v1/chat/completions"


# ---------------------------------------------------------------------------
# Gemini Adapter (Google AI)
# ---------------------------------------------------------------------------


class GeminiAdapter(BaseVendorAdapter):
    """Google Gemini adapter with SAFETY filter detection."""

    vendor = ProviderVendor.GEMINI
    default_model = "gemini-2.5-flash"
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    async def complete(self, request: ProviderRequest, timeout: float = DEFAULT_TIMEOUT) -> ProviderResponse:
        model = request.model or self.model
        start = time.monotonic()

        payload = {
            "contents": [{"role": "user", "parts": [{"text": request.user_prompt}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
            },
        }
        # System instruction is separate from contents in the Gemini API
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}

        data = await self._post(
            self.api_url_template.format(model=model),
            timeout,
            json=payload,
            params={"key": self.api_key},
            headers={"Content-Type": "application/json"},
        )

        if data.get("error"):
            message = data["error"].get("message", "unknown error")
            if data["error"].get("code") == 429:
                raise ProviderUnavailable(f"Rate limited by gemini: {message}", vendor="gemini", status_code=429)
            raise ProviderUnavailable(f"gemini error: {message}", vendor="gemini")

        candidates = data.get("candidates") or []
        if not candidates:
            raise MalformedResponse("Gemini returned no candidates", vendor="gemini")

        candidate = candidates[0]
        if candidate.get("finishReason") == "SAFETY":
            raise MalformedResponse("Gemini safety filter triggered", vendor="gemini")

        parts = (candidate.get("content") or {}).get("parts") or []
        content = "".join(part.get("text", "") for part in parts)

        usage = data.get("usageMetadata") or {}
        return self._response(content, usage.get("totalTokenCount", 0), model, start)


# ---------------------------------------------------------------------------
# Hugging Face text classification (legacy sentiment)
# ---------------------------------------------------------------------------


class HuggingFaceClassifier:
    """Hosted text-classification model (e.g. DistilBERT SST-2).

    Not a chat model: returns the top (label, score) for a short text.
    The model accepts roughly 512 tokens per call.
    """

    vendor = ProviderVendor.HUGGINGFACE

    def __init__(self, api_token: str, model_url: str):
        self.api_token = api_token
        self.model_url = model_url

    async def classify(self, text: str, timeout: float = DEFAULT_TIMEOUT) -> tuple[str, float]:
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(
                    self.model_url,
                    json={"inputs": text},
                    headers={"Authorization": f"Bearer {self.api_token}"},
                )
        except httpx.TimeoutException as e:
            PROVIDER_CALLS.labels(vendor="huggingface", status="timeout").inc()
            raise ProviderUnavailable(f"huggingface timeout after {timeout}s", vendor="huggingface") from e
        except httpx.HTTPError as e:
            PROVIDER_CALLS.labels(vendor="huggingface", status="network_error").inc()
            raise ProviderUnavailable(f"huggingface transport error: {e}", vendor="huggingface") from e
        finally:
            PROVIDER_LATENCY.labels(vendor="huggingface").observe(time.monotonic() - start)

        # 503 while the model is loading counts as unavailable too
        if resp.status_code == 429 or resp.status_code >= 400:
            PROVIDER_CALLS.labels(vendor="huggingface", status="vendor_error").inc()
            raise ProviderUnavailable(
                f"huggingface HTTP {resp.status_code}", vendor="huggingface", status_code=resp.status_code
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise MalformedResponse("huggingface returned non-JSON body", vendor="huggingface") from e

        top = self._top_candidate(payload)
        if top is None:
            PROVIDER_CALLS.labels(vendor="huggingface", status="malformed").inc()
            raise MalformedResponse("huggingface payload has no label/score", vendor="huggingface")

        PROVIDER_CALLS.labels(vendor="huggingface", status="success").inc()
        return top

    @staticmethod
    def _top_candidate(payload) -> tuple[str, float] | None:
        """Accept [[{label, score}, ...]], [{label, score}, ...] or {label, score}."""
        if isinstance(payload, list) and payload:
            first = payload[0]
            if isinstance(first, list) and first:
                first = first[0]
            payload = first
        if isinstance(payload, dict) and "label" in payload and "score" in payload:
            try:
                return str(payload["label"]), float(payload["score"])
            except (TypeError, ValueError):
                return None
        return None


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[ProviderVendor, type[BaseVendorAdapter]] = {
    ProviderVendor.OPENAI: OpenAICompatibleAdapter,
    ProviderVendor.OPENROUTER: OpenRouterAdapter,
    ProviderVendor.CEREBRAS: CerebrasAdapter,
    ProviderVendor.GEMINI: GeminiAdapter,
}


def get_adapter(vendor: ProviderVendor | str, api_key: str, **kwargs) -> BaseVendorAdapter:
    """Factory: get the appropriate adapter for a vendor."""
    try:
        vendor = ProviderVendor(vendor)
    except ValueError:
        raise ValueError(f"Unknown vendor: {vendor}") from None
    cls = ADAPTER_REGISTRY.get(vendor)
    if cls is None:
        raise ValueError(f"No chat adapter registered for vendor: {vendor.value}")
    return cls(api_key=api_key, **kwargs)
