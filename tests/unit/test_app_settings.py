"""Tests for environment-driven application settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from wikifetch.fetch.constants import DEFAULT_USER_AGENT
from wikifetch.settings import AppSettings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run from an empty directory so no .env file is picked up."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "WIKIFETCH_DB_PATH",
        "WIKIFETCH_SITE",
        "WIKIFETCH_MAX_WORKERS",
        "WIKIFETCH_MAX_RETRIES",
        "WIKIFETCH_API_SCHEME",
    ):
        monkeypatch.delenv(name, raising=False)


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self) -> None:
        settings = AppSettings()

        assert settings.site == "en.wikipedia.org"
        assert settings.db_path == Path("data/articles.sqlite")
        assert settings.api_scheme == "https"
        assert settings.user_agent == DEFAULT_USER_AGENT

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WIKIFETCH_SITE", "de.wikipedia.org")
        monkeypatch.setenv("WIKIFETCH_MAX_WORKERS", "8")
        monkeypatch.setenv("WIKIFETCH_DB_PATH", "/tmp/wiki.sqlite")

        settings = AppSettings()

        assert settings.site == "de.wikipedia.org"
        assert settings.max_workers == 8
        assert settings.db_path == Path("/tmp/wiki.sqlite")

    def test_dotenv_file(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("WIKIFETCH_MAX_RETRIES=5\n")

        assert AppSettings().max_retries == 5

    def test_invalid_scheme_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WIKIFETCH_API_SCHEME", "ftp")

        with pytest.raises(ValidationError):
            AppSettings()

    def test_to_fetch_config(self) -> None:
        settings = AppSettings(max_workers=2, max_retries=1, timeout_seconds=5.0)

        config = settings.to_fetch_config()

        assert config.max_workers == 2
        assert config.retry_policy.max_retries == 1
        assert config.default_timeout_seconds == 5.0
        assert config.user_agent == settings.user_agent
