"""Core types for the provider gateway.

Every LLM vendor sits behind the same capability:
    ProviderRequest{system_prompt, user_prompt, max_tokens, temperature}
        -> ProviderResponse{content, tokens_used}
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProviderVendor(str, Enum):
    """Supported provider vendors."""

    OPENAI = "openai"
    OPENROUTER = "openrouter"
    CEREBRAS = "cerebras"
    GEMINI = "gemini"
    HUGGINGFACE = "huggingface"  # text-classification only, no chat completions


@dataclass
class ProviderRequest:
    """A single prompt sent to a provider."""

    system_prompt: str = ""
    user_prompt: str = ""
    max_tokens: int = 1024
    temperature: float = 0.0
    model: str = ""  # empty = adapter default


@dataclass
class ProviderResponse:
    """Normalized provider answer, identical in shape for every vendor."""

    content: str = ""
    tokens_used: int = 0
    vendor: str = ""
    model: str = ""
    latency_ms: int = 0
    cost_usd: float = 0.0

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "tokens_used": self.tokens_used,
            "vendor": self.vendor,
            "model": self.model,
            "latency_ms": self.latency_ms,
            "cost_usd": self.cost_usd,
        }
