from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Tuple

PRIORITIES: Tuple[str, ...] = ("P0", "P1", "P2", "P3")
STATUSES: Tuple[str, ...] = ("TODO", "DONE", "SKIP")
DEFAULT_STATUS = "TODO"


@dataclass(frozen=True)
class ImpactHint:
    has_external: bool = False
    has_async: bool = False
    has_try_catch: bool = False
    has_complex_logic: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ImpactHint"]:
        if data is None:
            return None
        return cls(
            has_external=bool(data.get("hasExternal", data.get("has_external", False))),
            has_async=bool(data.get("hasAsync", data.get("has_async", False))),
            has_try_catch=bool(data.get("hasTryCatch", data.get("has_try_catch", False))),
            has_complex_logic=bool(data.get("hasComplexLogic", data.get("has_complex_logic", False))),
        )


@dataclass(frozen=True)
class FunctionTarget:
    name: str
    path: str
    type: str = "function"
    exported: bool = True
    impact_hint: Optional[ImpactHint] = None

    @property
    def key(self) -> str:
        return f"{self.path}#{self.name}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionTarget":
        return cls(
            name=str(data["name"]),
            path=str(data["path"]).replace("\\", "/"),
            type=str(data.get("type", "function")),
            exported=bool(data.get("exported", True)),
            impact_hint=ImpactHint.from_dict(data.get("impactHint", data.get("impact_hint"))),
        )


@dataclass(frozen=True)
class GitSignals:
    total_commits: int = 0
    recent_commits: int = 0
    unique_authors: int = 0
    avg_time_gap: float = 0.0
    cross_module_refs: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GitSignals":
        return cls(
            total_commits=int(data.get("totalCommits", 0) or 0),
            recent_commits=int(data.get("recentCommits", 0) or 0),
            unique_authors=int(data.get("uniqueAuthors", 0) or 0),
            avg_time_gap=float(data.get("avgTimeGap", 0) or 0),
            cross_module_refs=int(data.get("crossModuleRefs", 0) or 0),
        )


@dataclass(frozen=True)
class FunctionMetrics:
    cyclomatic: int = 1
    cognitive: Optional[int] = None


@dataclass(frozen=True)
class Suggestion:
    """One AI-proposed override, scoped to a path pattern.

    ``value`` carries the category-specific field: ``suggestedBC``,
    ``suggestedER`` or the testability ``adjustment``.
    """

    pattern: str
    confidence: float
    reason: str = ""
    evidence: Tuple[str, ...] = ()
    value: Optional[float] = None


@dataclass(frozen=True)
class AISuggestions:
    business_critical_paths: Tuple[Suggestion, ...] = ()
    high_risk_modules: Tuple[Suggestion, ...] = ()
    testability_adjustments: Tuple[Suggestion, ...] = ()


@dataclass(frozen=True)
class ScoredTarget:
    name: str
    path: str
    type: str
    exported: bool
    BC: int
    CC: int
    ER: int
    ROI: int
    testability: int
    coverage_score: int
    score: float
    priority: str  # P0|P1|P2|P3
    layer: str
    dependency_count: int
    dependency_score: int = 2
    coverage_pct: Optional[float] = None

    @property
    def key(self) -> str:
        return f"{self.path}#{self.name}"


@dataclass(frozen=True)
class SkippedTarget:
    key: str
    reason: str


@dataclass
class ScoreResult:
    targets: List[ScoredTarget] = field(default_factory=list)
    skipped: List[SkippedTarget] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        counts = {p: 0 for p in PRIORITIES}
        for t in self.targets:
            counts[t.priority] += 1
        counts["total"] = len(self.targets)
        return counts
