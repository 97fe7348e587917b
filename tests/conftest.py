from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

import pytest

from testtriage.config import ScoringConfig


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative_path: content}`` under tmp_path and return the root."""

    def _make(files: Dict[str, str]) -> Path:
        (tmp_path / ".git").mkdir(exist_ok=True)
        for rel, content in files.items():
            target = tmp_path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return tmp_path

    return _make


@pytest.fixture
def unified() -> ScoringConfig:
    return ScoringConfig()


