"""Shared test fixtures for codecapi.

Provides the petstore document fixture, compiled API fixtures, and
resets the process-wide output manager and request defaults between tests.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from codecapi.compiler import compile_spec
from codecapi.config import reset_defaults
from codecapi.models import CompiledApi, CompileOptions
from codecapi.output import reset_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_globals_between_tests() -> None:
    """Reset the global OutputManager and request defaults after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()
    reset_defaults()


# ---------------------------------------------------------------------------
# Document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_raw() -> dict[str, Any]:
    """Load the raw petstore document."""
    with open(FIXTURES_DIR / "petstore.json") as f:
        return json.load(f)


@pytest.fixture
def petstore_path() -> Path:
    return FIXTURES_DIR / "petstore.json"


@pytest.fixture
def petstore(petstore_raw: dict[str, Any]) -> CompiledApi:
    """The petstore document compiled with default options."""
    return compile_spec(petstore_raw)


@pytest.fixture
def petstore_optimistic(petstore_raw: dict[str, Any]) -> CompiledApi:
    return compile_spec(petstore_raw, CompileOptions(optimistic=True))


@pytest.fixture
def make_document():
    """Return a builder for small OpenAPI 3 documents around *paths* and *schemas*."""

    def _make(paths: dict[str, Any], schemas: dict[str, Any] | None = None) -> dict[str, Any]:
        return {
            "openapi": "3.0.0",
            "info": {"title": "Test", "version": "1"},
            "paths": paths,
            "components": {"schemas": schemas or {}},
        }

    return _make
