"""Tests for the wikifetch command-line interface."""

import json
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from tests.helpers.mobileview import mobileview_payload
from tests.helpers.wiki_server import WikiState, running_wiki
from wikifetch import __version__
from wikifetch.article.models import Article, ArticleTitle, Section
from wikifetch.cli.main import cli
from wikifetch.observability.logging import configure_logging
from wikifetch.store.store import ArticleStore


@pytest.fixture(autouse=True)
def logs_to_real_stderr(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep structlog away from the runner's short-lived streams."""

    def _configure(level: int | str, json_format: bool) -> None:
        configure_logging(level=level, output=sys.__stderr__, json_format=json_format)

    monkeypatch.setattr("wikifetch.cli.main.configure_logging", _configure)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "articles.sqlite"


def seed(db_path: Path, *titles: ArticleTitle) -> None:
    with ArticleStore(db_path) as store:
        for title in titles:
            store.save_article(
                Article(
                    title=title,
                    display_title=title.text,
                    sections=[
                        Section(index=0, text="<p>Lead</p>"),
                        Section(index=1, toc_level=1, line="History", number="1"),
                    ],
                )
            )


class TestCliBasics:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("fetch", "show", "list", "delete"):
            assert command in result.output


class TestStoredArticleCommands:
    """Tests for commands that only read or modify the store."""

    def test_show_outline(self, runner: CliRunner, db_path: Path) -> None:
        seed(db_path, ArticleTitle(text="Ada Lovelace"))

        result = runner.invoke(cli, ["show", "Ada_Lovelace", "--db", str(db_path)])

        assert result.exit_code == 0, result.output
        assert "Ada Lovelace" in result.stdout
        assert "1 History" in result.stdout

    def test_show_json(self, runner: CliRunner, db_path: Path) -> None:
        seed(db_path, ArticleTitle(text="Ada Lovelace"))

        result = runner.invoke(
            cli, ["show", "Ada Lovelace", "--db", str(db_path), "--json"]
        )

        assert result.exit_code == 0, result.output
        document = json.loads(result.stdout)
        assert document["title"]["text"] == "Ada Lovelace"
        assert len(document["sections"]) == 2

    def test_show_missing(self, runner: CliRunner, db_path: Path) -> None:
        result = runner.invoke(cli, ["show", "Nobody", "--db", str(db_path)])

        assert result.exit_code == 1
        assert "Not stored" in result.output

    def test_list(self, runner: CliRunner, db_path: Path) -> None:
        seed(
            db_path,
            ArticleTitle(text="Ada Lovelace"),
            ArticleTitle(site="de.wikipedia.org", text="Berlin"),
        )

        everything = runner.invoke(cli, ["list", "--db", str(db_path)])
        german = runner.invoke(
            cli, ["list", "--db", str(db_path), "--site", "de.wikipedia.org"]
        )

        assert everything.exit_code == 0
        assert "Ada Lovelace" in everything.stdout
        assert "Berlin" in everything.stdout
        assert "2 sections" in everything.stdout
        assert "Berlin" in german.stdout
        assert "Ada Lovelace" not in german.stdout

    def test_delete(self, runner: CliRunner, db_path: Path) -> None:
        seed(db_path, ArticleTitle(text="Ada Lovelace"))

        first = runner.invoke(cli, ["delete", "Ada Lovelace", "--db", str(db_path)])
        second = runner.invoke(cli, ["delete", "Ada Lovelace", "--db", str(db_path)])

        assert first.exit_code == 0
        assert "Deleted en.wikipedia.org/Ada_Lovelace" in first.stdout
        assert second.exit_code == 1


class TestFetchCommand:
    """Tests for ``wikifetch fetch`` against a local API stand-in."""

    @pytest.fixture(autouse=True)
    def plain_http(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WIKIFETCH_API_SCHEME", "http")
        monkeypatch.setenv("WIKIFETCH_MAX_RETRIES", "0")

    def test_fetch_saves_article(self, runner: CliRunner, db_path: Path) -> None:
        state = WikiState(pages={"Barack Obama": mobileview_payload()})

        with running_wiki(state) as site:
            result = runner.invoke(
                cli,
                ["fetch", "Barack Obama", "--site", site, "--db", str(db_path)],
            )

        assert result.exit_code == 0, result.output
        assert "1.1 Education" in result.stdout
        with ArticleStore(db_path) as store:
            assert store.has_article(ArticleTitle(site=site, text="Barack Obama"))

    def test_fetch_missing_page_exits_nonzero(
        self, runner: CliRunner, db_path: Path
    ) -> None:
        with running_wiki(WikiState(pages={})) as site:
            result = runner.invoke(
                cli,
                ["fetch", "Nothing here", "--site", site, "--db", str(db_path)],
            )

        assert result.exit_code == 1
        assert "DATA_NOT_FOUND" in result.output
