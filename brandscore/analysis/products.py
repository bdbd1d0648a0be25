"""Product name resolution for the fallback path.

Configured product names always win. Otherwise the LLM is asked once per
entity for the official products it sells; the sanitized answer is cached
per entity. Resolution never fails a record: any error yields [].
"""

from __future__ import annotations

import asyncio
import logging
import re

from brandscore.analysis.cache import Cache, InMemoryCache
from brandscore.analysis.llm_json import parse_json_array
from brandscore.analysis.types import EntityProfile
from brandscore.gateway.types import ProviderRequest
from brandscore.gateway.vendor_adapters import DEFAULT_TIMEOUT, BaseVendorAdapter

logger = logging.getLogger(__name__)

MAX_BRAND_PRODUCTS = 12
MAX_COMPETITOR_PRODUCTS = 8
MAX_SNIPPET_CHARS = 8000

_PARENTHETICAL = re.compile(r"\([^)]*\)")
_QUOTES = re.compile(r"[\"'`]")
_TRAILING_DESCRIPTION = re.compile(r"\s*[-–—:]\s+.*$")
_WHITESPACE = re.compile(r"\s+")


def sanitize_product_name(name: str) -> str:
    """Drop parentheticals, quotes and trailing " - description" parts."""
    sanitized = _PARENTHETICAL.sub(" ", name or "")
    sanitized = _QUOTES.sub("", sanitized)
    sanitized = _TRAILING_DESCRIPTION.sub("", sanitized)
    return _WHITESPACE.sub(" ", sanitized).strip()


def sanitize_products(names: list, limit: int) -> list[str]:
    """Sanitize, de-duplicate case-insensitively and cap a product list."""
    result: list[str] = []
    seen: set[str] = set()
    for name in names:
        if not isinstance(name, str):
            continue
        clean = sanitize_product_name(name)
        if clean and clean.lower() not in seen:
            seen.add(clean.lower())
            result.append(clean)
        if len(result) >= limit:
            break
    return result


PRODUCT_PROMPT_TEMPLATE = """Your task is to extract only real, commercially branded products made by the brand below.

Brand: "{brand}"
Snippet:
{snippet}

Rules:
1. Include only official products sold by "{brand}": specific product names, SKUs, models, or variants that consumers can buy and that appear in the brand's catalog or marketing.
2. Exclude all generics: ingredients, materials, components, categories (e.g. "pain reliever", "running shoes", "smartphone"), and any descriptive phrases.
3. Exclude competitors and their products entirely.
4. Exclude side effects, conditions, benefits, use-cases, and features.
5. If a name is not clearly an official product of "{brand}", leave it out.
6. Use both the snippet and your general knowledge, but never invent products.

Output: A JSON array of up to {limit} valid product names. If none exist, return []."""


class ProductResolver:
    """Resolve product names for one entity when consolidated analysis is unavailable."""

    def __init__(
        self,
        adapter: BaseVendorAdapter | None = None,
        cache: Cache | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        model: str = "",
    ):
        self.adapter = adapter
        self.cache = cache if cache is not None else InMemoryCache()
        self.timeout = timeout
        self.model = model

    async def resolve(self, profile: EntityProfile, text: str | None, limit: int = MAX_BRAND_PRODUCTS) -> list[str]:
        if profile.product_names:
            return list(profile.product_names)
        if self.adapter is None or not text or not text.strip():
            return []

        key = f"products:{profile.canonical_name.lower()}"
        cached = await self.cache.get(key)
        if cached is not None:
            return list(cached)

        request = ProviderRequest(
            system_prompt="You extract product names. Respond with a JSON array only.",
            user_prompt=PRODUCT_PROMPT_TEMPLATE.format(
                brand=profile.canonical_name, snippet=text[:MAX_SNIPPET_CHARS], limit=limit
            ),
            max_tokens=512,
            temperature=0.0,
            model=self.model,
        )
        try:
            response = await asyncio.wait_for(self.adapter.complete(request, timeout=self.timeout), self.timeout)
            products = sanitize_products(parse_json_array(response.content, vendor=response.vendor), limit)
        except Exception as e:
            logger.warning("Product extraction failed for %s: %s", profile.canonical_name, e)
            return []

        await self.cache.set(key, products)
        logger.info("Resolved %d products for %s", len(products), profile.canonical_name)
        return products
