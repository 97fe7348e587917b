"""Tests for testtriage.metrics."""

from __future__ import annotations

import itertools
import json
from pathlib import Path

import pytest

from testtriage.config import DEFAULT_DEPENDENCY_MAPPING, ScoringConfig
from testtriage.metrics import (
    impact,
    likelihood,
    load_eslint_cognitive,
    map_bc,
    map_cc,
    map_coverage,
    map_dependency_count,
    map_er,
    map_roi,
    map_testability,
)
from testtriage.signals import AISuggestions, FunctionMetrics, GitSignals, Suggestion
from tests._fixtures.builders import make_target

HINT_FLAGS = ("has_external", "has_async", "has_try_catch", "has_complex_logic")


def all_hint_combinations():
    for bits in itertools.product((False, True), repeat=len(HINT_FLAGS)):
        yield dict(zip(HINT_FLAGS, bits))


def with_suggestions(**categories) -> ScoringConfig:
    return ScoringConfig(suggestions=AISuggestions(**categories))


def test_error_risk_example() -> None:
    git = GitSignals(total_commits=60, recent_commits=12, unique_authors=3, cross_module_refs=0)
    t = make_target(has_external=True)

    assert likelihood(git) == 7
    assert impact(t.impact_hint) == 5
    assert map_er(t, git, ScoringConfig()) == 6


def test_error_risk_rounds_half_up() -> None:
    # L = 3, I = 6, so (L + I) / 2 = 4.5
    t = make_target(has_async=True, has_try_catch=True, has_complex_logic=True)
    assert map_er(t, GitSignals(), ScoringConfig()) == 5


def test_error_risk_without_signals_uses_bases() -> None:
    assert map_er(make_target(), None, ScoringConfig()) == 3


@pytest.mark.parametrize("field", ["total_commits", "recent_commits", "unique_authors"])
def test_likelihood_is_monotonic_in_history(field: str) -> None:
    previous = 0
    for value in range(0, 80):
        current = likelihood(GitSignals(**{field: value}))
        assert current >= previous
        previous = current


def test_likelihood_author_bands() -> None:
    assert likelihood(GitSignals(unique_authors=6)) == 4
    assert likelihood(GitSignals(unique_authors=11)) == 5


def test_likelihood_is_clamped() -> None:
    busy = GitSignals(total_commits=500, recent_commits=100, unique_authors=50, cross_module_refs=9)
    assert likelihood(busy) == 10


def test_ai_suggestion_beats_main_chain_and_hints() -> None:
    cfg = ScoringConfig(
        main_chain_paths=["checkout"],
        suggestions=AISuggestions(
            business_critical_paths=(Suggestion(pattern="src/payments/*", confidence=0.9, value=10),)
        ),
    )
    t = make_target(path="src/payments/checkout.ts", has_external=True)

    assert map_bc(t, cfg, overrides={"src/payments/checkout.ts": 2}) == 10


def test_first_matching_suggestion_wins() -> None:
    cfg = with_suggestions(
        high_risk_modules=(
            Suggestion(pattern="src/other/**", confidence=0.95, value=2),
            Suggestion(pattern="src/api/**", confidence=0.9, value=8),
            Suggestion(pattern="src/api/*", confidence=0.8, value=3),
        )
    )
    assert map_er(make_target(path="src/api/client.ts"), None, cfg) == 8


def test_suggestion_without_value_falls_through() -> None:
    cfg = with_suggestions(
        business_critical_paths=(
            Suggestion(pattern="src/**", confidence=0.9, value=None),
            Suggestion(pattern="src/**", confidence=0.86, value=8),
        )
    )
    assert map_bc(make_target(), cfg) == 8


def test_suggestion_values_are_clamped() -> None:
    cfg = with_suggestions(high_risk_modules=(Suggestion(pattern="src/**", confidence=0.9, value=14),))
    assert map_er(make_target(), None, cfg) == 10


def test_empty_suggestions_do_not_crash() -> None:
    cfg = with_suggestions()
    t = make_target()
    assert map_bc(t, cfg) == 5
    assert map_testability(t, cfg) == 5


def test_override_beats_heuristics() -> None:
    cfg = ScoringConfig(main_chain_paths=["app"], overrides={"BC": {"src/app.ts": 3}})
    t = make_target(has_complex_logic=True)

    assert map_bc(t, cfg) == 3
    assert map_er(t, GitSignals(total_commits=100), cfg, overrides={"src/app.ts": 12}) == 10
    assert map_roi(t, cfg, overrides={"src/app.ts": 2}) == 2
    assert map_testability(t, cfg, overrides={"src/app.ts": 9}) == 9


def test_override_for_other_path_is_ignored() -> None:
    cfg = ScoringConfig(overrides={"BC": {"src/other.ts": 1}})
    assert map_bc(make_target(), cfg) == 5


def test_business_criticality_heuristics() -> None:
    cfg = ScoringConfig(main_chain_paths=["Order"])
    assert map_bc(make_target(path="src/order/create.ts"), cfg) == 9
    assert map_bc(make_target(has_async=True), cfg) == 7
    assert map_bc(make_target(has_external=True), cfg) == 7
    assert map_bc(make_target(has_try_catch=True), cfg) == 5


@pytest.mark.parametrize(
    "cyclomatic,expected",
    [(1, 1), (3, 1), (4, 3), (5, 3), (10, 5), (15, 7), (20, 9), (21, 10)],
)
def test_code_complexity_cyclomatic_bands(cyclomatic: int, expected: int) -> None:
    assert map_cc(make_target(), FunctionMetrics(cyclomatic=cyclomatic)) == expected


@pytest.mark.parametrize(
    "cognitive,expected",
    [(5, 1), (6, 3), (10, 3), (15, 5), (20, 7), (30, 9), (31, 10)],
)
def test_code_complexity_cognitive_bands(cognitive: int, expected: int) -> None:
    assert map_cc(make_target(), FunctionMetrics(cyclomatic=50, cognitive=cognitive)) == expected


def test_code_complexity_prefers_external_cognitive_data() -> None:
    t = make_target()
    external = {"src/app.ts": {"run": 12}}
    assert map_cc(t, FunctionMetrics(cyclomatic=25, cognitive=40), external) == 5


def test_code_complexity_ignores_non_positive_sources() -> None:
    t = make_target()
    external = {"src/app.ts": {"run": 0}}
    assert map_cc(t, FunctionMetrics(cyclomatic=12, cognitive=0), external) == 7
    assert map_cc(t) == 1


def test_roi_heuristics() -> None:
    cfg = ScoringConfig()
    assert map_roi(make_target(), cfg) == 5
    assert map_roi(make_target(has_complex_logic=True, has_try_catch=True, has_async=True), cfg) == 9


@pytest.mark.parametrize(
    "adjustment,expected",
    [(-2, 3), (-1, 4), (1, 6), (2, 7)],
)
def test_testability_suggestion_adjusts_base(adjustment: int, expected: int) -> None:
    cfg = with_suggestions(
        testability_adjustments=(Suggestion(pattern="src/**", confidence=0.85, value=adjustment),)
    )
    # suggestion wins over the hint penalties
    assert map_testability(make_target(has_external=True, has_async=True), cfg) == expected


def test_testability_heuristic_rounds_half_up() -> None:
    cfg = ScoringConfig()
    assert map_testability(make_target(has_try_catch=True), cfg) == 5
    assert map_testability(make_target(has_complex_logic=True, has_async=True, has_external=True, has_try_catch=True), cfg) == 2


@pytest.mark.parametrize("hint", list(all_hint_combinations()))
def test_calculators_stay_in_range(hint) -> None:
    cfg = ScoringConfig(main_chain_paths=["app"])
    t = make_target(**hint)
    git = GitSignals(total_commits=99, recent_commits=99, unique_authors=99, cross_module_refs=99)
    for value in (map_bc(t, cfg), map_cc(t), map_er(t, git, cfg), map_roi(t, cfg), map_testability(t, cfg)):
        assert isinstance(value, int)
        assert 1 <= value <= 10


@pytest.mark.parametrize(
    "pct,expected",
    [(None, 0), (-5, 0), (0, 0), (0.5, 1), (9.99, 1), (10, 1), (10.01, 2), (47, 5), (100, 10), (130, 10)],
)
def test_coverage_score(pct, expected: int) -> None:
    assert map_coverage(pct) == expected


def test_load_eslint_cognitive(tmp_path: Path) -> None:
    report = tmp_path / "eslint.json"
    report.write_text(
        json.dumps(
            [
                {
                    "filePath": "/home/dev/project/src/services/order.ts",
                    "messages": [
                        {"ruleId": "sonarjs/cognitive-complexity", "message": "Function 'createOrder' has a complexity of 17."},
                        {"ruleId": "complexity", "message": "Function 'createOrder' has a complexity of 9."},
                        {"ruleId": "no-unused-vars", "message": "x is unused"},
                    ],
                },
                {"filePath": "/home/dev/project/src/empty.ts", "messages": []},
            ]
        ),
        encoding="utf-8",
    )

    assert load_eslint_cognitive(str(report)) == {"src/services/order.ts": {"createOrder": 17}}


def test_load_eslint_cognitive_missing_file(tmp_path: Path) -> None:
    assert load_eslint_cognitive(str(tmp_path / "nope.json")) == {}


def test_single_star_suggestion_does_not_reach_subdirectories() -> None:
    cfg = with_suggestions(
        business_critical_paths=(Suggestion(pattern="src/payments/*", confidence=0.9, value=10),)
    )

    assert map_bc(make_target(path="src/payments/checkout.ts"), cfg) == 10
    assert map_bc(make_target(path="src/payments/internal/refund.ts"), cfg) == 5


@pytest.mark.parametrize(
    "count,expected",
    [(0, 2), (1, 4), (2, 4), (3, 6), (4, 6), (5, 8), (9, 8), (10, 10), (200, 10)],
)
def test_dependency_count_bands(count: int, expected: int) -> None:
    assert map_dependency_count(count, DEFAULT_DEPENDENCY_MAPPING) == expected


def test_dependency_count_custom_rules() -> None:
    rules = [{"eq": 0, "score": 1}, {"gte": 1, "lt": 50, "score": 5}, {"gte": 50, "score": 14}]

    assert map_dependency_count(0, rules) == 1
    assert map_dependency_count(49, rules) == 5
    assert map_dependency_count(50, rules) == 10
    assert map_dependency_count(3, [{"gte": 5, "score": 9}]) == 2
