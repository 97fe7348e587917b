"""Per-target metric calculators.

Every calculator is a pure function returning an integer in ``[1, 10]``
(coverage: ``[0, 10]``). BC, ER and testability share one precedence chain,
expressed as an ordered list of resolvers: AI suggestion, explicit override,
heuristics, then a fixed default. The first resolver that yields a value
wins.
"""
from __future__ import annotations
import json, logging, math, re
from typing import Callable, Dict, Mapping, Optional, Sequence

from .config import ScoringConfig
from .signals import FunctionMetrics, FunctionTarget, GitSignals, ImpactHint, Suggestion
from .utils import clamp, match_pattern, round_half_up, strip_json_comments, to_posix

logger = logging.getLogger(__name__)

Resolver = Callable[[], Optional[float]]
CognitiveData = Mapping[str, Mapping[str, int]]

NO_HINT = ImpactHint()

COGNITIVE_BANDS = ((5, 1), (10, 3), (15, 5), (20, 7), (30, 9))
CYCLOMATIC_BANDS = ((3, 1), (5, 3), (10, 5), (15, 7), (20, 9))


def resolve(chain: Sequence[Resolver], default: int) -> int:
    for resolver in chain:
        value = resolver()
        if value is not None:
            return int(clamp(round_half_up(value), 1, 10))
    return default


def from_suggestions(path: str, items: Sequence[Suggestion], transform=None) -> Resolver:
    def resolver():
        for item in items:
            if item.value is not None and match_pattern(path, item.pattern):
                return transform(item.value) if transform else item.value
        return None
    return resolver


def from_override(path: str, overrides: Optional[Mapping[str, float]]) -> Resolver:
    def resolver():
        if overrides is None:
            return None
        return overrides.get(path)
    return resolver


def _overrides(cfg: ScoringConfig, metric: str, overrides):
    return overrides if overrides is not None else cfg.overrides.get(metric)


def is_main_chain(path: str, cfg: ScoringConfig) -> bool:
    lower = (path or "").lower()
    return any(str(p).lower() in lower for p in cfg.main_chain_paths)


# Business Criticality

def map_bc(target: FunctionTarget, cfg: ScoringConfig, overrides: Optional[Mapping[str, float]] = None) -> int:
    hint = target.impact_hint or NO_HINT
    return resolve(
        [
            from_suggestions(target.path, cfg.suggestions.business_critical_paths),
            from_override(target.path, _overrides(cfg, "BC", overrides)),
            lambda: 9 if is_main_chain(target.path, cfg) else None,
            lambda: 7 if hint.has_external or hint.has_async else None,
        ],
        default=5,
    )


# Code Complexity

def _band(value: float, bands) -> int:
    for upper, score in bands:
        if value <= upper:
            return score
    return 10


def map_cc(
    target: FunctionTarget,
    metrics: Optional[FunctionMetrics] = None,
    cognitive_data: Optional[CognitiveData] = None,
) -> int:
    external = (cognitive_data or {}).get(target.path, {}).get(target.name)
    if external is not None and external > 0:
        return _band(external, COGNITIVE_BANDS)
    metrics = metrics or FunctionMetrics()
    if metrics.cognitive is not None and metrics.cognitive > 0:
        return _band(metrics.cognitive, COGNITIVE_BANDS)
    return _band(metrics.cyclomatic or 1, CYCLOMATIC_BANDS)


_COMPLEXITY_VALUE = re.compile(r"[Cc]omplexity (?:of|from) (\d+)")
_FUNCTION_NAME = re.compile(r"(?:Function|Method) '([^']+)'")


def load_eslint_cognitive(path: str) -> Dict[str, Dict[str, int]]:
    """Extract per-function cognitive complexity from ``eslint -f json`` output.

    Plain ``complexity`` (cyclomatic) messages are ignored. Files that cannot
    be read yield an empty mapping.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.loads(strip_json_comments(f.read()))
    except (OSError, ValueError) as e:
        logger.warning("Cannot load ESLint cognitive data from %s: %s", path, e)
        return {}
    if not isinstance(data, list):
        return {}

    result: Dict[str, Dict[str, int]] = {}
    for item in data:
        file_path = item.get("filePath") if isinstance(item, dict) else None
        if not file_path or not isinstance(item.get("messages"), list):
            continue
        file_path = re.sub(r"^.*/src/", "src/", to_posix(file_path))
        for msg in item["messages"]:
            rule = msg.get("ruleId") or ""
            if "complexity" not in rule or rule == "complexity":
                continue
            m = _COMPLEXITY_VALUE.search(msg.get("message") or "")
            if not m:
                continue
            fn = _FUNCTION_NAME.search(msg.get("message") or "")
            result.setdefault(file_path, {})[fn.group(1) if fn else "unknown"] = int(m.group(1))
    return result


# Error Risk

def likelihood(git: GitSignals) -> int:
    score = 3
    if git.total_commits > 50:
        score += 2
    elif git.total_commits > 20:
        score += 1
    if git.recent_commits > 10:
        score += 2
    elif git.recent_commits > 5:
        score += 1
    if git.unique_authors > 10:
        score += 2
    elif git.unique_authors > 5:
        score += 1
    if git.cross_module_refs > 3:
        score += 1
    return int(clamp(score, 1, 10))


def impact(hint: Optional[ImpactHint]) -> int:
    hint = hint or NO_HINT
    score = 3
    if hint.has_external:
        score += 2
    score += int(hint.has_async) + int(hint.has_try_catch) + int(hint.has_complex_logic)
    return int(clamp(score, 1, 10))


def map_er(
    target: FunctionTarget,
    git: Optional[GitSignals],
    cfg: ScoringConfig,
    overrides: Optional[Mapping[str, float]] = None,
) -> int:
    git = git or GitSignals()
    return resolve(
        [
            from_suggestions(target.path, cfg.suggestions.high_risk_modules),
            from_override(target.path, _overrides(cfg, "ER", overrides)),
            lambda: round_half_up((likelihood(git) + impact(target.impact_hint)) / 2) or 1,
        ],
        default=1,
    )


# ROI

def map_roi(target: FunctionTarget, cfg: ScoringConfig, overrides: Optional[Mapping[str, float]] = None) -> int:
    hint = target.impact_hint or NO_HINT
    return resolve(
        [
            from_override(target.path, _overrides(cfg, "ROI", overrides)),
            lambda: 5 + 2 * hint.has_complex_logic + hint.has_try_catch + hint.has_async,
        ],
        default=5,
    )


# Testability

TESTABILITY_BASE = 5


def map_testability(
    target: FunctionTarget,
    cfg: ScoringConfig,
    overrides: Optional[Mapping[str, float]] = None,
) -> int:
    hint = target.impact_hint or NO_HINT
    penalty = hint.has_complex_logic + hint.has_async + hint.has_external + 0.5 * hint.has_try_catch
    return resolve(
        [
            from_suggestions(
                target.path,
                cfg.suggestions.testability_adjustments,
                transform=lambda adj: TESTABILITY_BASE + adj,
            ),
            from_override(target.path, _overrides(cfg, "testability", overrides)),
            lambda: TESTABILITY_BASE - penalty,
        ],
        default=TESTABILITY_BASE,
    )


# Coverage

def map_coverage(pct: Optional[float]) -> int:
    """0 when coverage is unknown or zero, else ``ceil(pct / 10)`` in ``[1, 10]``."""
    if pct is None or pct <= 0:
        return 0
    return int(clamp(math.ceil(pct / 10), 1, 10))


# Dependency count

DEPENDENCY_DEFAULT = 2


def map_dependency_count(count: int, mapping: Sequence[Mapping[str, float]]) -> int:
    """Map a raw dependency count onto ``[1, 10]``; the first matching rule wins.

    A rule matches on ``eq`` exactly, or on ``gte`` with an optional
    exclusive ``lt`` upper bound.
    """
    for rule in mapping:
        exact = "eq" in rule and count == rule["eq"]
        ranged = "gte" in rule and count >= rule["gte"] and ("lt" not in rule or count < rule["lt"])
        if exact or ranged:
            return int(clamp(round_half_up(rule["score"]), 1, 10))
    return DEPENDENCY_DEFAULT
