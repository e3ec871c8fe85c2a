"""Command-line interface for fetching and inspecting stored articles."""

import json
import sys
from pathlib import Path

import click

from wikifetch import __version__
from wikifetch.article.errors import ArticleFetchError
from wikifetch.article.fetcher import ArticleFetcher
from wikifetch.article.models import Article, ArticleTitle
from wikifetch.fetch.manager import RequestOperationManager
from wikifetch.observability.logging import configure_logging
from wikifetch.settings import AppSettings, get_settings
from wikifetch.store.store import ArticleStore


def _print_outline(article: Article) -> None:
    click.echo(article.display_title or article.title.text)
    if article.redirected_from:
        click.echo(f"  (redirected from {article.redirected_from})")
    if article.description:
        click.echo(f"  {article.description}")
    click.echo("")
    for section in article.sections:
        if section.is_lead:
            click.echo(f"  [lead] {len(section.text)} chars")
            continue
        indent = "  " * max(1, section.toc_level or 1)
        label = f"{section.number} " if section.number else ""
        click.echo(f"{indent}{label}{section.line or ''}")


def _article_to_json(article: Article) -> str:
    return json.dumps(article.model_dump(mode="json"), indent=2, ensure_ascii=False)


@click.group()
@click.version_option(version=__version__)
@click.option("--pretty/--json-logs", default=True, help="Console or JSON log output.")
@click.pass_context
def cli(ctx: click.Context, pretty: bool) -> None:
    """Fetch MediaWiki articles into a local SQLite store."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=not pretty)
    ctx.obj = settings


@cli.command()
@click.argument("title")
@click.option("--site", default=None, help="Wiki host, e.g. en.wikipedia.org.")
@click.option(
    "--db",
    "db_path",
    default=None,
    type=click.Path(path_type=Path),
    help="Path to the SQLite article store.",
)
@click.option(
    "--timeout",
    default=120.0,
    type=float,
    show_default=True,
    help="Seconds to wait for the whole fetch.",
)
@click.option("--json", "json_output", is_flag=True, help="Print the article as JSON.")
@click.pass_obj
def fetch(
    settings: AppSettings,
    title: str,
    site: str | None,
    db_path: Path | None,
    timeout: float,
    json_output: bool,
) -> None:
    """Fetch all sections of TITLE and save them."""
    article_title = ArticleTitle.from_string(site or settings.site, title)
    fetcher = ArticleFetcher()

    def on_progress(value: float) -> None:
        click.echo(f"\rDownloading {article_title.text}: {value:4.0%}", nl=False, err=True)

    def on_completion(article: Article | None, error: ArticleFetchError | None) -> None:
        click.echo("", err=True)

    with (
        ArticleStore(db_path or settings.db_path) as store,
        RequestOperationManager(settings.to_fetch_config()) as manager,
    ):
        operation = fetcher.fetch_sections(
            article_title, store, manager, on_progress, on_completion
        )
        try:
            article = operation.result(timeout=timeout)
        except TimeoutError:
            operation.cancel()
            click.echo(f"Error: timed out after {timeout}s", err=True)
            sys.exit(1)
        except ArticleFetchError as e:
            click.echo(f"Error ({e.error_class.value}): {e.message}", err=True)
            sys.exit(1)

    if json_output:
        click.echo(_article_to_json(article))
    else:
        _print_outline(article)


@cli.command()
@click.argument("title")
@click.option("--site", default=None, help="Wiki host, e.g. en.wikipedia.org.")
@click.option(
    "--db",
    "db_path",
    default=None,
    type=click.Path(path_type=Path),
    help="Path to the SQLite article store.",
)
@click.option("--json", "json_output", is_flag=True, help="Print the article as JSON.")
@click.pass_obj
def show(
    settings: AppSettings,
    title: str,
    site: str | None,
    db_path: Path | None,
    json_output: bool,
) -> None:
    """Print a stored article."""
    article_title = ArticleTitle.from_string(site or settings.site, title)
    with ArticleStore(db_path or settings.db_path) as store:
        article = store.article_for_title(article_title)

    if article is None:
        click.echo(f"Not stored: {article_title.key}", err=True)
        sys.exit(1)
    if json_output:
        click.echo(_article_to_json(article))
    else:
        _print_outline(article)


@cli.command("list")
@click.option("--site", default=None, help="Only list titles from this wiki.")
@click.option(
    "--db",
    "db_path",
    default=None,
    type=click.Path(path_type=Path),
    help="Path to the SQLite article store.",
)
@click.pass_obj
def list_titles(settings: AppSettings, site: str | None, db_path: Path | None) -> None:
    """List stored articles."""
    with ArticleStore(db_path or settings.db_path) as store:
        titles = store.list_titles(site)

    for stored in titles:
        click.echo(
            f"{stored.site}\t{stored.text}\t{stored.section_count} sections\t"
            f"{stored.saved_at.isoformat()}"
        )


@cli.command()
@click.argument("title")
@click.option("--site", default=None, help="Wiki host, e.g. en.wikipedia.org.")
@click.option(
    "--db",
    "db_path",
    default=None,
    type=click.Path(path_type=Path),
    help="Path to the SQLite article store.",
)
@click.pass_obj
def delete(settings: AppSettings, title: str, site: str | None, db_path: Path | None) -> None:
    """Remove a stored article."""
    article_title = ArticleTitle.from_string(site or settings.site, title)
    with ArticleStore(db_path or settings.db_path) as store:
        deleted = store.delete_article(article_title)

    if not deleted:
        click.echo(f"Not stored: {article_title.key}", err=True)
        sys.exit(1)
    click.echo(f"Deleted {article_title.key}")


if __name__ == "__main__":
    cli()
