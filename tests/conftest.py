from __future__ import annotations

from pathlib import Path

import pytest

from gitstats.config import Config
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a fresh git repository rooted under the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def sequential_config() -> Config:
    config = Config()
    config.performance.workers = 1
    return config
