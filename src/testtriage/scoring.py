from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Tuple

from .config import ScoringConfig
from .layers import layer_config
from .utils import to_fixed_down


@dataclass(frozen=True)
class WeightTable:
    weights: Dict[str, float]
    thresholds: Dict[str, float]
    source: str  # layer name, or "global"


def resolve_weights(layer: str, cfg: ScoringConfig) -> WeightTable:
    """Layer-specific weights in layered mode, global weights otherwise."""
    if cfg.mode == "layered":
        layer_def = layer_config(layer, cfg)
        if layer_def is not None:
            return WeightTable(layer_def.weights, layer_def.thresholds, layer_def.name)
    return WeightTable(cfg.weights, cfg.thresholds, "global")


def compute_score(components: Dict[str, float], weights: Dict[str, float]) -> float:
    wsum = 0.0
    for k, v in components.items():
        w = weights.get(k, 0.0)
        wsum += w * v
    return to_fixed_down(wsum, 2)


def bucket(score: float, thresholds: Dict[str, float]) -> str:
    if score >= thresholds["P0"]:
        return "P0"
    if score >= thresholds["P1"]:
        return "P1"
    if score >= thresholds["P2"]:
        return "P2"
    return "P3"


def aggregate(components: Dict[str, float], layer: str, cfg: ScoringConfig) -> Tuple[float, str]:
    table = resolve_weights(layer, cfg)
    score = compute_score(components, table.weights)
    return score, bucket(score, table.thresholds)
