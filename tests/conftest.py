"""Pytest configuration and fixtures for ApeCrunch tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from apecrunch.calc.evaluator import Evaluator
from apecrunch.calc.variables import VariableTable
from apecrunch.config import (
    ENV_AUTOSAVE_INTERVAL,
    ENV_DATA_DIR,
    ENV_DECIMAL_PLACES,
    ENV_HISTORY_FILE,
    ENV_LOG_LEVEL,
    CalcSettings,
)
from apecrunch.engine import CalcEngine
from apecrunch.storage.tracing import APECRUNCH_OTEL_ENABLED_ENV


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove ApeCrunch settings from the environment for every test.

    Tests that exercise configuration set the variables they need.
    """
    for name in (
        ENV_DECIMAL_PLACES,
        ENV_AUTOSAVE_INTERVAL,
        ENV_DATA_DIR,
        ENV_HISTORY_FILE,
        ENV_LOG_LEVEL,
        APECRUNCH_OTEL_ENABLED_ENV,
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_data_dir() -> Iterator[Path]:
    """Create a temporary data directory."""
    with tempfile.TemporaryDirectory(prefix="apecrunch_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_data_dir: Path) -> CalcSettings:
    """Settings pointing at the temporary data directory."""
    return CalcSettings(data_dir=temp_data_dir)


@pytest.fixture
def engine(settings: CalcSettings) -> CalcEngine:
    """A fresh engine over an empty history file."""
    return CalcEngine.open(settings)


@pytest.fixture
def variables() -> VariableTable:
    return VariableTable()


@pytest.fixture
def evaluator(variables: VariableTable) -> Evaluator:
    return Evaluator(variables)
