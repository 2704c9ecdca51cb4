"""Shared test fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make _helpers importable from test files
sys.path.insert(0, str(Path(__file__).parent))

from _helpers import FakeDataset, ScriptedModel, make_config  # noqa: E402

from evolving_explanations.config import EEConfig  # noqa: E402
from evolving_explanations.log_config import configure_logging  # noqa: E402
from evolving_explanations.persistence.completions import InMemoryCompletionStore  # noqa: E402

configure_logging("WARNING")


@pytest.fixture
def config() -> EEConfig:
    return make_config()


@pytest.fixture
def dataset() -> FakeDataset:
    return FakeDataset()


@pytest.fixture
def model() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def store() -> InMemoryCompletionStore:
    return InMemoryCompletionStore()
