"""Occurrence finder: locate entity mentions by 1-indexed token position.

Matching rules, applied to every candidate name of an EntityProfile
(canonical name, aliases, product names):
  - multi-token candidates match exact contiguous token runs; every token
    covered by the run is recorded
  - single-token candidates match the whole token, its plural (+s / +es),
    or as a substring of a longer token (partial, >= 3 chars only)
Possessives are removed during normalization, so "Acme's" matches "Acme".
"""

from __future__ import annotations

import re

from brandscore.analysis.types import EntityProfile, Occurrence, OccurrenceSet

# Letters and digits plus both apostrophe forms; underscores are not word chars here
_TOKEN_RE = re.compile(r"(?:[^\W_]|['’])+", re.UNICODE)
_EDGE_RE = re.compile(r"^[^\w]+|[^\w]+$", re.UNICODE)

MIN_PARTIAL_LENGTH = 3


def normalize_word(word: str) -> str:
    """Lowercase and strip apostrophes, punctuation and possessive suffixes."""
    # Plural possessives ("brands'") lose their apostrophe here
    normalized = word.lower().replace("’", "'").strip("'")
    if normalized.endswith("'s"):
        normalized = normalized[:-2]
    return _EDGE_RE.sub("", normalized).strip("'")


def tokenize(text: str | None) -> list[str]:
    """Split text into normalized tokens, dropping ones that normalize to nothing."""
    if not text:
        return []
    tokens = []
    for raw in _TOKEN_RE.findall(text):
        token = normalize_word(raw)
        if token:
            tokens.append(token)
    return tokens


def normalize_term(term: str) -> list[str]:
    return tokenize(term)


def count_words(text: str | None) -> int:
    return len(tokenize(text))


def find_term_positions(tokens: list[str], term_tokens: list[str]) -> list[int]:
    """1-indexed start positions where term_tokens appears as a contiguous run."""
    if not term_tokens or len(term_tokens) > len(tokens):
        return []
    size = len(term_tokens)
    return [i + 1 for i in range(len(tokens) - size + 1) if tokens[i : i + size] == term_tokens]


def _match_single(token: str, term: str) -> tuple[bool, bool]:
    """Return (matched, partial) for a single-token candidate."""
    if token == term or token == term + "s" or token == term + "es":
        return True, False
    if len(term) >= MIN_PARTIAL_LENGTH and term in token:
        return True, True
    return False, False


def find_occurrences(text: str | None, profile: EntityProfile) -> OccurrenceSet:
    """Find every mention of the profile's names in text."""
    tokens = tokenize(text)
    result = OccurrenceSet(entity=profile.canonical_name, total_words=len(tokens))
    if not tokens:
        return result

    product_keys = {p.strip().lower() for p in profile.product_names}
    hits: dict[int, Occurrence] = {}

    for name in profile.all_names():
        term_tokens = normalize_term(name)
        if not term_tokens:
            continue
        is_product = name.lower() in product_keys
        matches = 0

        if len(term_tokens) == 1:
            term = term_tokens[0]
            for index, token in enumerate(tokens, start=1):
                matched, partial = _match_single(token, term)
                if not matched:
                    continue
                matches += 1
                existing = hits.get(index)
                # An exact hit replaces an earlier partial one at the same position
                if existing is None or (existing.partial and not partial):
                    hits[index] = Occurrence(token_position=index, matched_term=name, partial=partial)
        else:
            for start in find_term_positions(tokens, term_tokens):
                matches += 1
                for index in range(start, start + len(term_tokens)):
                    existing = hits.get(index)
                    if existing is None or existing.partial:
                        hits[index] = Occurrence(token_position=index, matched_term=name)

        if is_product:
            result.product_mentions += matches

    result.occurrences = [hits[position] for position in sorted(hits)]
    return result
