"""Pytest fixtures for reconciliation tests.

The reconciliation core is pure apart from the canonical store, which is an
SQLite file written under ``tmp_path``. No database server is needed.

Examples
--------
Run the reconciliation unit and behavioural tests:

>>> pytest tests -k reconciliation
"""

from __future__ import annotations

import asyncio
import typing as typ

import pytest

from scorecard.canonical import (
    ReconciliationPipeline,
    ReconciliationSettings,
)
from scorecard.canonical.adapters import IdentityNormaliser
from scorecard.concurrency import InlineShowTaskExecutor

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def _function_scoped_runner() -> typ.Iterator[asyncio.Runner]:
    """Provide a function-scoped asyncio.Runner for sync BDD steps."""
    with asyncio.Runner() as runner:
        yield runner


@pytest.fixture
def normaliser() -> IdentityNormaliser:
    """Return a normaliser over the built-in reference tables."""
    return IdentityNormaliser()


@pytest.fixture
def settings() -> ReconciliationSettings:
    """Return default reconciliation settings."""
    return ReconciliationSettings()


@pytest.fixture
def pipeline(settings: ReconciliationSettings) -> ReconciliationPipeline:
    """Return the reference pipeline without human overrides."""
    return ReconciliationPipeline.from_settings(settings)


@pytest.fixture
def inline_executor() -> typ.Iterator[InlineShowTaskExecutor]:
    """Yield an inline executor so tests avoid environment lookups."""
    executor = InlineShowTaskExecutor()
    yield executor
    executor.shutdown()


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Return a not-yet-created directory for persisted outputs."""
    return tmp_path / "release"
