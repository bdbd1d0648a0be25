"""Citation extractor.

Collects the URLs an answer relies on:
  - Native citations supplied with the record (RawAnswerRecord.cited_urls)
  - Inline hyperlinks: [text](url)
  - Footnote definitions: [1]: https://...
  - Bare URLs: https://example.com
and reduces them to the unique domains the classifier works on.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from brandscore.analysis.types import CitedUrl

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# URL / link extraction patterns
# ---------------------------------------------------------------------------

# Markdown-style links: [anchor text](url)
_MD_LINK_PATTERN = re.compile(
    r"\[([^\]]+)\]\((https?://[^\s\)]+)\)",
)

# Bare URLs
_BARE_URL_PATTERN = re.compile(
    r"(?<!\()(https?://[^\s\)\]\"'>]+)",
)

# Footnote definitions at end of text: [1]: https://...
_FOOTNOTE_DEF_PATTERN = re.compile(
    r"^\s*\[\^?(\d+)\]:?\s+(https?://\S+)",
    re.MULTILINE,
)


def extract_domain(url: str) -> str:
    """Hostname of a URL or bare domain, lowercased, without "www."."""
    url = (url or "").strip()
    if not url:
        return ""
    if "://" not in url:
        url = "http://" + url
    try:
        domain = urlparse(url).hostname or ""
    except ValueError:
        logger.debug("Unparseable URL skipped: %s", url)
        return ""
    domain = domain.lower().rstrip(".")
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def extract_cited_urls(text: str | None, native_urls: list[str] | tuple[str, ...] | None = None) -> list[CitedUrl]:
    """Extract every cited URL, native ones first, deduplicated by URL."""
    text = text or ""
    cited: list[CitedUrl] = []
    seen_urls: set[str] = set()

    def _add(url: str, anchor: str = "", native: bool = False) -> None:
        if not url or url in seen_urls:
            return
        domain = extract_domain(url)
        if not domain:
            return
        seen_urls.add(url)
        cited.append(CitedUrl(url=url, domain=domain, anchor_text=anchor, is_native=native))

    # 1. Native citations
    for url in native_urls or []:
        _add(url.strip(), native=True)

    # 2. Markdown links
    for match in _MD_LINK_PATTERN.finditer(text):
        _add(match.group(2).strip(), anchor=match.group(1).strip())

    # 3. Footnote definitions
    for match in _FOOTNOTE_DEF_PATTERN.finditer(text):
        _add(match.group(2).strip().rstrip(".,;:"))

    # 4. Bare URLs not already captured
    for match in _BARE_URL_PATTERN.finditer(text):
        _add(match.group(1).strip().rstrip(".,;:"))

    return cited


def get_unique_domains(cited: list[CitedUrl]) -> list[str]:
    """Deduplicated domains in first-seen order."""
    seen: set[str] = set()
    domains: list[str] = []
    for c in cited:
        if c.domain and c.domain not in seen:
            seen.add(c.domain)
            domains.append(c.domain)
    return domains


def extract_domains(text: str | None, native_urls: list[str] | tuple[str, ...] | None = None) -> list[str]:
    return get_unique_domains(extract_cited_urls(text, native_urls))
