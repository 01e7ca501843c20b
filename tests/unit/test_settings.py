"""Unit tests for environment-driven settings."""

from pathlib import Path

from pydantic import ValidationError
import pytest

from docs_quicksearch.config import Settings
from docs_quicksearch.search.version import MajorMinorVersion


pytestmark = pytest.mark.unit


def test_defaults_from_test_environment(test_settings: Settings) -> None:
    assert test_settings.get_search_roots() == []
    assert test_settings.get_target_version() is None
    assert test_settings.docs_index_path == "en/ScriptReference/docdata/index.json"
    assert test_settings.docs_version_path == "en/ScriptReference/index.html"
    assert test_settings.docs_url_prefix == "en/ScriptReference"
    assert test_settings.otlp_endpoint == ""
    assert test_settings.log_json is False


def test_search_roots_are_ordered_and_trimmed(monkeypatch) -> None:
    monkeypatch.setenv("DOCS_QUICKSEARCH_SEARCH_ROOTS", " /project/docs , ,/opt/unity/docs,")

    roots = Settings().get_search_roots()

    assert roots == [Path("/project/docs"), Path("/opt/unity/docs")]


def test_search_roots_expand_user(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("DOCS_QUICKSEARCH_SEARCH_ROOTS", "~/indexes")

    assert Settings().get_search_roots() == [tmp_path / "indexes"]


@pytest.mark.parametrize(
    ("value", "expected"),
    [("2019.3", MajorMinorVersion(2019, 3)), ("2020.1.4f1", MajorMinorVersion(2020, 1)), ("", None)],
)
def test_target_version(monkeypatch, value: str, expected) -> None:
    monkeypatch.setenv("DOCS_QUICKSEARCH_TARGET_VERSION", value)
    assert Settings().get_target_version() == expected


def test_invalid_target_version_fails_fast(monkeypatch) -> None:
    monkeypatch.setenv("DOCS_QUICKSEARCH_TARGET_VERSION", "latest")
    with pytest.raises(ValidationError):
        Settings()


def test_invalid_otlp_protocol_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("DOCS_QUICKSEARCH_OTLP_PROTOCOL", "udp")
    with pytest.raises(ValidationError):
        Settings()


def test_explicit_arguments_override_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DOCS_QUICKSEARCH_INDEX_OUTPUT_DIR", "/from/env")
    settings = Settings(index_output_dir=tmp_path)
    assert settings.index_output_dir == tmp_path
