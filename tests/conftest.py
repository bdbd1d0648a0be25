from __future__ import annotations

import pytest

from brandscore.analysis.cache import Cache
from brandscore.analysis.types import EntityProfile
from brandscore.gateway.types import ProviderRequest, ProviderResponse, ProviderVendor
from brandscore.gateway.vendor_adapters import BaseVendorAdapter


class ScriptedAdapter(BaseVendorAdapter):
    """Adapter stand-in that replays scripted answers.

    Each script item is a string (returned as content), an exception (raised),
    or a callable taking the ProviderRequest and returning either. The last
    item repeats once the script runs out.
    """

    vendor = ProviderVendor.OPENROUTER

    def __init__(self, *script, tokens_used: int = 120):
        super().__init__(api_key="test-key", model="test-model")
        self.script = list(script)
        self.tokens_used = tokens_used
        self.requests: list[ProviderRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def complete(self, request: ProviderRequest, timeout: float = 30.0) -> ProviderResponse:
        self.requests.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if callable(item):
            item = item(request)
        if isinstance(item, BaseException):
            raise item
        return ProviderResponse(content=item, tokens_used=self.tokens_used, vendor=self.vendor.value, model=self.model)


class DownCache(Cache):
    """Cache stand-in for an unreachable Redis; reads and/or writes raise."""

    def __init__(self, fail_get: bool = True, fail_set: bool = True):
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.data: dict = {}

    async def get(self, key):
        if self.fail_get:
            raise ConnectionError("redis unavailable")
        return self.data.get(key)

    async def set(self, key, value):
        if self.fail_set:
            raise ConnectionError("redis unavailable")
        self.data[key] = value

    async def delete(self, key):
        self.data.pop(key, None)


@pytest.fixture
def acme() -> EntityProfile:
    return EntityProfile(canonical_name="Acme", product_names=("Acme Pro",))


@pytest.fixture
def globex() -> EntityProfile:
    return EntityProfile(canonical_name="Globex", aliases=("Globex Corp",))
