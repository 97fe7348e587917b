from __future__ import annotations
import os, copy, logging, numbers, yaml
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .signals import AISuggestions, Suggestion
from .utils import strip_json_comments

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("testtriage.yml", "ai-test.config.jsonc", "ai-test.config.json")

MODES = ("layered", "unified")
DEPENDENCY_METRICS = ("fanIn", "fanOut", "graphSize")
LAYER_WEIGHT_KEYS = ("BC", "CC", "ER", "testability", "dependencyCount", "coverage")
GLOBAL_WEIGHT_KEYS = ("BC", "CC", "ER")
THRESHOLD_KEYS = ("P0", "P1", "P2")
OVERRIDE_METRICS = ("BC", "ER", "ROI", "testability")

DEFAULT_DEPENDENCY_MAPPING: List[Dict[str, float]] = [
    {"gte": 10, "score": 10},
    {"gte": 5, "lt": 10, "score": 8},
    {"gte": 3, "lt": 5, "score": 6},
    {"gte": 1, "lt": 3, "score": 4},
    {"eq": 0, "score": 2},
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "mode": "layered",
    "weights": {"BC": 0.4, "CC": 0.3, "ER": 0.2, "ROI": 0.1, "coverage": 0.0},
    "thresholds": {"P0": 8.5, "P1": 6.5, "P2": 4.5},
    "layers": {
        "foundation": {
            "patterns": ["utils/**", "lib/**", "helpers/**", "shared/**"],
            "weights": {"BC": 0.2, "CC": 0.3, "ER": 0.2, "testability": 0.3, "dependencyCount": 0.05, "coverage": -0.1},
            "thresholds": {"P0": 7.5, "P1": 6.0, "P2": 4.0},
        },
        "business": {
            "patterns": ["services/**", "api/**", "domain/**", "core/**"],
            "weights": {"BC": 0.35, "CC": 0.2, "ER": 0.3, "testability": 0.15, "dependencyCount": 0.05, "coverage": -0.1},
            "thresholds": {"P0": 8.0, "P1": 6.5, "P2": 4.5},
        },
        "state": {
            "patterns": ["store/**", "stores/**", "state/**", "hooks/**"],
            "weights": {"BC": 0.3, "CC": 0.25, "ER": 0.25, "testability": 0.2, "dependencyCount": 0.05, "coverage": -0.1},
            "thresholds": {"P0": 8.0, "P1": 6.5, "P2": 4.5},
        },
        "ui": {
            "patterns": ["components/**", "pages/**", "views/**"],
            "weights": {"BC": 0.25, "CC": 0.25, "ER": 0.2, "testability": 0.3, "dependencyCount": 0.02, "coverage": -0.1},
            "thresholds": {"P0": 8.5, "P1": 7.0, "P2": 5.0},
        },
    },
    "mainChainPaths": [],
    "dependencyMetric": "fanIn",
    "dependencyCountMapping": DEFAULT_DEPENDENCY_MAPPING,
    "overrides": {},
    "aiEnhancement": {"suggestions": {}},
}


class ConfigError(ValueError):
    """Raised when the scoring configuration is unreadable or incomplete."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid scoring config: " + "; ".join(self.problems))


@dataclass(frozen=True)
class LayerConfig:
    name: str
    patterns: List[str]
    weights: Dict[str, float]
    thresholds: Dict[str, float]


@dataclass
class ScoringConfig:
    mode: str = "unified"
    layers: Dict[str, LayerConfig] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CONFIG["weights"]))
    thresholds: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CONFIG["thresholds"]))
    main_chain_paths: List[str] = field(default_factory=list)
    suggestions: AISuggestions = field(default_factory=AISuggestions)
    overrides: Dict[str, Dict[str, float]] = field(default_factory=dict)
    dependency_metric: str = "fanIn"
    dependency_mapping: List[Dict[str, float]] = field(
        default_factory=lambda: [dict(rule) for rule in DEFAULT_DEPENDENCY_MAPPING]
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoringConfig":
        """Build a validated config; every problem found is reported at once."""
        problems: List[str] = []
        mode = data.get("mode", "unified")
        if mode not in MODES:
            problems.append(f"mode must be one of {', '.join(MODES)} (got {mode!r})")

        weights = _numeric_table(data.get("weights"), "weights", GLOBAL_WEIGHT_KEYS, problems)
        thresholds = _numeric_table(data.get("thresholds"), "thresholds", THRESHOLD_KEYS, problems)
        _check_descending(thresholds, "thresholds", problems)

        layers: Dict[str, LayerConfig] = {}
        raw_layers = data.get("layers") or {}
        if not isinstance(raw_layers, dict):
            problems.append("layers must be a mapping of layer name to definition")
            raw_layers = {}
        if mode == "layered" and not raw_layers:
            problems.append("layers is required in layered mode")
        # unified mode only reports the matched layer, so weight tables are not checked
        layer_problems: List[str] = []
        for name, raw in raw_layers.items():
            prefix = f"layers.{name}"
            if not isinstance(raw, dict):
                layer_problems.append(f"{prefix} must be a mapping")
                continue
            patterns = raw.get("patterns")
            if not isinstance(patterns, list) or not patterns:
                layer_problems.append(f"{prefix}.patterns")
                patterns = []
            lw = _numeric_table(raw.get("weights"), f"{prefix}.weights", LAYER_WEIGHT_KEYS, layer_problems)
            lt = _numeric_table(raw.get("thresholds"), f"{prefix}.thresholds", THRESHOLD_KEYS, layer_problems)
            _check_descending(lt, f"{prefix}.thresholds", layer_problems)
            layers[str(name)] = LayerConfig(str(name), [str(p) for p in patterns], lw, lt)
        if mode == "layered":
            problems.extend(layer_problems)

        dep_metric = data.get("dependencyMetric", "fanIn")
        if dep_metric not in DEPENDENCY_METRICS:
            problems.append(f"dependencyMetric must be one of {', '.join(DEPENDENCY_METRICS)} (got {dep_metric!r})")
        dep_mapping = _dependency_mapping(data.get("dependencyCountMapping"), problems)

        overrides: Dict[str, Dict[str, float]] = {}
        for metric, mapping in (data.get("overrides") or {}).items():
            if metric not in OVERRIDE_METRICS or not isinstance(mapping, dict):
                problems.append(f"overrides.{metric}")
                continue
            table = _numeric_table(mapping, f"overrides.{metric}", (), problems)
            overrides[metric] = table

        ai = (data.get("aiEnhancement") or {}).get("suggestions") or {}
        suggestions = parse_suggestions(ai, problems)

        if problems:
            raise ConfigError(problems)

        return cls(
            mode=mode,
            layers=layers,
            weights=weights,
            thresholds=thresholds,
            main_chain_paths=[str(p) for p in data.get("mainChainPaths") or []],
            suggestions=suggestions,
            overrides=overrides,
            dependency_metric=dep_metric,
            dependency_mapping=dep_mapping,
        )


def _numeric_table(raw: Any, prefix: str, required, problems: List[str]) -> Dict[str, float]:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        problems.append(f"{prefix} must be a mapping")
        return {}
    table: Dict[str, float] = {}
    for key in required:
        if raw.get(key) is None:
            problems.append(f"{prefix}.{key}")
    for key, value in raw.items():
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            problems.append(f"{prefix}.{key} must be a number (got {value!r})")
            continue
        table[str(key)] = float(value)
    return table


def _check_descending(thresholds: Dict[str, float], prefix: str, problems: List[str]):
    if all(k in thresholds for k in THRESHOLD_KEYS):
        if not thresholds["P0"] >= thresholds["P1"] >= thresholds["P2"]:
            problems.append(f"{prefix} must satisfy P0 >= P1 >= P2")


def _dependency_mapping(raw: Any, problems: List[str]) -> List[Dict[str, float]]:
    if raw is None:
        return [dict(rule) for rule in DEFAULT_DEPENDENCY_MAPPING]
    if not isinstance(raw, list) or not raw:
        problems.append("dependencyCountMapping must be a non-empty list of rules")
        return []
    rules: List[Dict[str, float]] = []
    for i, rule in enumerate(raw):
        prefix = f"dependencyCountMapping[{i}]"
        if not isinstance(rule, dict):
            problems.append(f"{prefix} must be a mapping")
            continue
        unknown = set(rule) - {"gte", "lt", "eq", "score"}
        if unknown:
            problems.append(f"{prefix} has unknown keys {', '.join(sorted(map(str, unknown)))}")
        if "score" not in rule or ("gte" not in rule and "eq" not in rule):
            problems.append(f"{prefix} needs score and one of gte or eq")
        table = _numeric_table({k: v for k, v in rule.items() if k in ("gte", "lt", "eq", "score")}, prefix, (), problems)
        rules.append(table)
    return rules


def _to_float(value: Any, where: str, problems: List[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        # testability adjustments arrive as signed strings such as "+1"
        return float(value)
    except (TypeError, ValueError):
        problems.append(f"{where} must be a number (got {value!r})")
        return None


def parse_suggestions(raw: Dict[str, Any], problems: List[str]) -> AISuggestions:
    def items(key: str, field_name: str):
        parsed = []
        for i, it in enumerate(raw.get(key) or []):
            where = f"aiEnhancement.suggestions.{key}[{i}]"
            if not isinstance(it, dict):
                problems.append(f"{where} must be a mapping")
                continue
            parsed.append(
                Suggestion(
                    pattern=str(it.get("pattern", "")),
                    confidence=_to_float(it.get("confidence", 0), f"{where}.confidence", problems) or 0.0,
                    reason=str(it.get("reason", "")),
                    evidence=tuple(it.get("evidence") or ()),
                    value=_to_float(it.get(field_name), f"{where}.{field_name}", problems),
                )
            )
        return tuple(parsed)

    if not isinstance(raw, dict):
        problems.append("aiEnhancement.suggestions must be a mapping")
        return AISuggestions()
    return AISuggestions(
        business_critical_paths=items("businessCriticalPaths", "suggestedBC"),
        high_risk_modules=items("highRiskModules", "suggestedER"),
        testability_adjustments=items("testabilityAdjustments", "adjustment"),
    )


def merge_config(user: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(DEFAULT_CONFIG)
    for k, v in user.items():
        # layers replace wholesale so the user's ordering decides matching
        if isinstance(v, dict) and isinstance(merged.get(k), dict) and k != "layers":
            merged[k].update(v)
        else:
            merged[k] = v
    return merged


def find_config(repo_root: str) -> Optional[str]:
    for name in CONFIG_FILENAMES:
        path = os.path.join(repo_root, name)
        if os.path.exists(path):
            return path
    return None


def read_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        if path.endswith((".json", ".jsonc")):
            text = strip_json_comments(text)
        data = yaml.safe_load(text) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError([f"cannot read {path}: {e}"]) from e
    if not isinstance(data, dict):
        raise ConfigError([f"{path} must contain a mapping at the root"])
    return data


def load_config(repo_root: str, path: Optional[str] = None) -> ScoringConfig:
    path = path or find_config(repo_root)
    if path is None:
        logger.info("No scoring config found in %s, using defaults", repo_root)
        return ScoringConfig.from_dict(copy.deepcopy(DEFAULT_CONFIG))
    if not os.path.exists(path):
        raise ConfigError([f"config file not found: {path}"])
    logger.info("Loading scoring config from %s", path)
    return ScoringConfig.from_dict(merge_config(read_config_file(path)))
