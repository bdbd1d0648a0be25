"""Tests for the Visibility & Share Calculator."""

import pytest

from brandscore.analysis.occurrence import find_occurrences
from brandscore.analysis.scoring import (
    build_metric_results,
    calculate_density,
    calculate_prominence,
    calculate_share_of_answers,
    calculate_visibility_index,
    to_score_100,
)
from brandscore.analysis.types import Occurrence, OccurrenceSet


def _set(entity: str, positions: list[int], total_words: int) -> OccurrenceSet:
    return OccurrenceSet(
        entity=entity,
        occurrences=[Occurrence(token_position=p) for p in positions],
        total_words=total_words,
    )


class TestComponents:
    def test_density(self):
        assert calculate_density(3, 8) == 0.375

    def test_density_zero_words(self):
        assert calculate_density(0, 0) == 0.0

    def test_prominence_first_token(self):
        assert calculate_prominence(1) == pytest.approx(1.0)

    def test_prominence_is_log_dampened(self):
        assert calculate_prominence(91) == pytest.approx(0.5)
        assert calculate_prominence(1) - calculate_prominence(2) > calculate_prominence(50) - calculate_prominence(51)

    def test_prominence_without_mention(self):
        assert calculate_prominence(None) == 0.0


class TestVisibilityIndex:
    def test_acme_example(self, acme):
        occurrences = find_occurrences("Acme is the best. Acme Pro costs $10.", acme)

        vi = calculate_visibility_index(occurrences.first_position, occurrences.total_mentions, occurrences.total_words)

        assert vi == 0.75

    def test_not_mentioned(self):
        assert calculate_visibility_index(None, 0, 100) == 0.0

    def test_bounded(self):
        assert calculate_visibility_index(1, 10, 10) == 1.0
        assert 0.0 <= calculate_visibility_index(500, 1, 1000) <= 1.0

    def test_rounded_to_four_places(self):
        vi = calculate_visibility_index(7, 1, 30)
        assert vi == round(vi, 4)


class TestShareOfAnswers:
    def test_basic(self):
        assert calculate_share_of_answers(3, 1) == 75.0

    def test_zero_denominator(self):
        assert calculate_share_of_answers(0, 0) == 0.0

    def test_rounded(self):
        assert calculate_share_of_answers(1, 2) == 33.33

    def test_only_primary(self):
        assert calculate_share_of_answers(4, 0) == 100.0


class TestBuildMetricResults:
    def test_brand_against_competitors(self):
        brand = _set("Acme", [1, 5, 9], 20)
        competitor = _set("Globex", [12], 20)

        results = build_metric_results("r1", brand, [competitor])

        assert [r.entity for r in results] == ["Acme", "Globex"]
        assert results[0].is_brand is True
        assert results[1].is_brand is False
        assert results[0].share_of_answers == 75.0
        assert results[1].share_of_answers == 25.0
        assert results[0].first_position == 1
        assert results[0].total_mentions == 3

    def test_competitor_share_includes_other_competitors(self):
        results = build_metric_results(
            "r1",
            _set("Acme", [1, 2, 3], 10),
            [_set("Globex", [4], 10), _set("Initech", [5], 10)],
        )

        assert results[0].share_of_answers == 60.0
        assert results[1].share_of_answers == 20.0
        assert results[2].share_of_answers == 20.0

    def test_nobody_mentioned(self):
        results = build_metric_results("r1", _set("Acme", [], 0), [])

        assert results[0].visibility_index == 0.0
        assert results[0].share_of_answers == 0.0
        assert results[0].first_position is None


class TestScore100:
    def test_extremes(self):
        assert to_score_100(-1.0) == 1
        assert to_score_100(1.0) == 100

    def test_monotonic(self):
        values = [to_score_100(s / 10) for s in range(-10, 11)]
        assert values == sorted(values)

    def test_out_of_range_clamped(self):
        assert to_score_100(3.0) == 100
