"""Visibility & Share Calculator.

Computes, per (record, entity):
  - Visibility Index:
      density    = total_mentions / total_words
      prominence = 1 / log10(first_position + 9)   (0 when never mentioned)
      VI         = clamp(0.6 × prominence + 0.4 × density, 0, 1)

  - Share of Answers:
      share = primary / (primary + secondary) × 100   (0 when nobody is mentioned)

Pure functions: no I/O, never raise.
"""

from __future__ import annotations

import logging
import math

from brandscore.analysis.types import MetricResult, OccurrenceSet

logger = logging.getLogger(__name__)

PROMINENCE_WEIGHT = 0.6
DENSITY_WEIGHT = 0.4


def calculate_density(total_mentions: int, total_words: int) -> float:
    if total_words <= 0 or total_mentions <= 0:
        return 0.0
    return total_mentions / total_words


def calculate_prominence(first_position: int | None) -> float:
    """Log-dampened reward for an early first mention.

    Position 1 scores 1.0; position 91 scores 0.5.
    """
    if first_position is None or first_position < 1:
        return 0.0
    return 1.0 / math.log10(first_position + 9)


def calculate_visibility_index(first_position: int | None, total_mentions: int, total_words: int) -> float:
    """Calculate the Visibility Index for one entity in one answer.

    Returns:
        Float between 0.0 and 1.0, rounded to 4 places.
    """
    prominence = calculate_prominence(first_position)
    density = calculate_density(total_mentions, total_words)
    raw = PROMINENCE_WEIGHT * prominence + DENSITY_WEIGHT * density
    return round(min(1.0, max(0.0, raw)), 4)


def calculate_share_of_answers(primary_mentions: int, secondary_mentions: int) -> float:
    """Share of all entity mentions that belong to the primary entity.

    Returns:
        Percentage between 0.0 and 100.0, rounded to 2 places.
    """
    total = primary_mentions + secondary_mentions
    if total <= 0:
        return 0.0
    return round(primary_mentions / total * 100, 2)


def build_metric_results(
    record_id: str,
    brand: OccurrenceSet,
    competitors: list[OccurrenceSet],
) -> list[MetricResult]:
    """Score the brand and every competitor of a record.

    The brand's share is measured against all competitor mentions; each
    competitor's share against the brand plus the other competitors.
    """
    all_sets = [brand, *competitors]
    grand_total = sum(s.total_mentions for s in all_sets)

    results = []
    for index, occurrence_set in enumerate(all_sets):
        primary = occurrence_set.total_mentions
        results.append(
            MetricResult(
                record_id=record_id,
                entity=occurrence_set.entity,
                is_brand=index == 0,
                visibility_index=calculate_visibility_index(
                    occurrence_set.first_position, primary, occurrence_set.total_words
                ),
                share_of_answers=calculate_share_of_answers(primary, grand_total - primary),
                first_position=occurrence_set.first_position,
                total_mentions=primary,
                product_mentions=occurrence_set.product_mentions,
                total_words=occurrence_set.total_words,
            )
        )

    logger.debug(
        "Scored record %s: %s",
        record_id,
        ", ".join(f"{r.entity}=VI {r.visibility_index} SoA {r.share_of_answers}" for r in results),
    )
    return results


def to_score_100(score: float) -> int:
    """Map a [-1, 1] sentiment score onto the [1, 100] dashboard scale."""
    clamped = min(1.0, max(-1.0, score))
    return round(((clamped + 1) / 2) * 99) + 1
