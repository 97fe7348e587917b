from __future__ import annotations
from typing import Optional

from .config import ScoringConfig, LayerConfig
from .utils import match_pattern

UNMATCHED = "unknown"


def match_layer(path: str, cfg: ScoringConfig) -> str:
    """Return the first configured layer whose patterns match ``path``.

    Layers are tried in config order, so specific layers must be declared
    before catch-all ones.
    """
    for name, layer in cfg.layers.items():
        if any(match_pattern(path, pattern) for pattern in layer.patterns):
            return name
    return UNMATCHED


def layer_config(layer: str, cfg: ScoringConfig) -> Optional[LayerConfig]:
    if layer == UNMATCHED:
        return None
    return cfg.layers.get(layer)
