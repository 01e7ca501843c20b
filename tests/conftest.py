"""Shared test fixtures and configuration."""

import os
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


# Complete test environment that overrides ALL possible config values
TEST_ENV = {
    # Index resolution
    "DOCS_QUICKSEARCH_SEARCH_ROOTS": "",
    "DOCS_QUICKSEARCH_TARGET_VERSION": "",
    # Index building
    "DOCS_QUICKSEARCH_INDEX_OUTPUT_DIR": ".",
    "DOCS_QUICKSEARCH_DOCS_INDEX_PATH": "en/ScriptReference/docdata/index.json",
    "DOCS_QUICKSEARCH_DOCS_VERSION_PATH": "en/ScriptReference/index.html",
    "DOCS_QUICKSEARCH_DOCS_URL_PREFIX": "en/ScriptReference",
    "DOCS_QUICKSEARCH_DOCS_BASE_URL": "https://docs.unity3d.com/ScriptReference/",
    # Logging
    "DOCS_QUICKSEARCH_LOG_LEVEL": "info",
    "DOCS_QUICKSEARCH_LOG_JSON": "false",
    # Tracing export - never reach a collector from tests
    "DOCS_QUICKSEARCH_OTLP_ENDPOINT": "",
    "DOCS_QUICKSEARCH_OTLP_PROTOCOL": "http",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset DOCS_QUICKSEARCH_* variables before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def test_settings():
    """Settings built from the test environment."""
    from docs_quicksearch.config import Settings

    return Settings()


@pytest.fixture
def sample_docs(tmp_path: Path) -> Path:
    """Offline documentation tree published as 2019.3-001B."""
    from tests.fixtures.docs_corpus import write_sample_docs

    return write_sample_docs(tmp_path / "docs")
