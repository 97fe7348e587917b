from __future__ import annotations
import logging, re
from typing import Dict, Iterable, List, Mapping, Optional

from .config import ScoringConfig
from .graph import DependencyGraph, build_dependency_graph
from .layers import match_layer
from .metrics import (
    CognitiveData,
    map_bc,
    map_cc,
    map_coverage,
    map_dependency_count,
    map_er,
    map_roi,
    map_testability,
)
from .scoring import aggregate
from .signals import FunctionMetrics, FunctionTarget, GitSignals, ScoredTarget, ScoreResult, SkippedTarget
from .utils import read_source

logger = logging.getLogger(__name__)


class SourceNotFound(LookupError):
    """The target's file or function could not be located."""


def resolve_source(target: FunctionTarget, root: str, cache: Dict[str, Optional[str]]) -> None:
    if target.path not in cache:
        cache[target.path] = read_source(root, target.path)
    text = cache[target.path]
    if text is None:
        raise SourceNotFound(f"source not found: {target.path}")
    if not re.search(rf"(?<![\w$]){re.escape(target.name)}(?![\w$])", text):
        raise SourceNotFound(f"function {target.name} not found in {target.path}")


def score_target(
    target: FunctionTarget,
    cfg: ScoringConfig,
    graph: DependencyGraph,
    git: Optional[GitSignals] = None,
    coverage_pct: Optional[float] = None,
    metrics: Optional[FunctionMetrics] = None,
    cognitive: Optional[CognitiveData] = None,
) -> ScoredTarget:
    BC = map_bc(target, cfg)
    CC = map_cc(target, metrics, cognitive)
    ER = map_er(target, git, cfg)
    ROI = map_roi(target, cfg)
    testability = map_testability(target, cfg)
    coverage_score = map_coverage(coverage_pct)
    dependency_count = graph.dependency_count(target.path, cfg.dependency_metric)
    dependency_score = map_dependency_count(dependency_count, cfg.dependency_mapping)

    layer = match_layer(target.path, cfg)
    components = {
        "BC": BC,
        "CC": CC,
        "ER": ER,
        "ROI": ROI,
        "testability": testability,
        "dependencyCount": dependency_score,
        "coverage": coverage_score,
    }
    score, priority = aggregate(components, layer, cfg)
    return ScoredTarget(
        name=target.name,
        path=target.path,
        type=target.type,
        exported=target.exported,
        BC=BC,
        CC=CC,
        ER=ER,
        ROI=ROI,
        testability=testability,
        coverage_score=coverage_score,
        score=score,
        priority=priority,
        layer=layer,
        dependency_count=dependency_count,
        dependency_score=dependency_score,
        coverage_pct=coverage_pct,
    )


def score_targets(
    targets: Iterable[FunctionTarget],
    cfg: ScoringConfig,
    git_data: Optional[Mapping[str, GitSignals]] = None,
    coverage: Optional[Mapping[str, Mapping[str, float]]] = None,
    metrics: Optional[Mapping[str, FunctionMetrics]] = None,
    cognitive: Optional[CognitiveData] = None,
    root: Optional[str] = None,
    extra_paths: Iterable[str] = (),
    graph: Optional[DependencyGraph] = None,
) -> ScoreResult:
    """Score every target and return them ranked by score.

    With a ``root`` each target's file and function must be locatable; the
    ones that are not go to ``ScoreResult.skipped`` instead of being scored.
    """
    targets = list(targets)
    git_data = git_data or {}
    coverage = coverage or {}
    metrics = metrics or {}
    if graph is None:
        graph = build_dependency_graph({t.path for t in targets}, root, extra_paths)

    result = ScoreResult()
    sources: Dict[str, Optional[str]] = {}
    for target in targets:
        try:
            if root is not None:
                resolve_source(target, root, sources)
            scored = score_target(
                target,
                cfg,
                graph,
                git=git_data.get(target.path),
                coverage_pct=(coverage.get(target.path) or {}).get("lineCoverage"),
                metrics=metrics.get(target.key),
                cognitive=cognitive,
            )
        except (SourceNotFound, ValueError, TypeError) as e:
            logger.warning("Skipping %s: %s", target.key, e)
            result.skipped.append(SkippedTarget(target.key, str(e)))
            continue
        result.targets.append(scored)

    # sort is stable, so equal scores keep their input order
    result.targets.sort(key=lambda t: t.score, reverse=True)
    logger.info("Scored %s targets (%s skipped)", len(result.targets), len(result.skipped))
    return result
