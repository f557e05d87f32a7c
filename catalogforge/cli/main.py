"""CatalogForge CLI - Main application entry point.

    catalogforge scrape categories
    catalogforge scrape products CATEGORY_ID
    catalogforge scrape detail PRODUCT_ID
    catalogforge cache-stats
    catalogforge serve
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

import typer

from catalogforge.cli.console import (
    get_console,
    key_value_table,
    records_table,
    render_error,
    tip,
)
from catalogforge.core.config import Config, load_config
from catalogforge.core.exceptions import CatalogForgeError, ScrapeFailedError
from catalogforge.core.logging import configure_logging
from catalogforge.reconcile.service import ScrapeOutcome
from catalogforge.scraping.cache import ResultCache
from catalogforge.scraping.models import ContentType

app = typer.Typer(
    name="catalogforge",
    help="Scrape a book catalog into a local database",
    add_completion=False,
)
scrape_app = typer.Typer(help="Scrape the origin site and store the results")
app.add_typer(scrape_app, name="scrape")

COLUMNS = {
    ContentType.CATEGORIES: ["id", "name", "slug", "source_url"],
    ContentType.PRODUCTS: ["id", "title", "author", "price", "currency", "condition"],
    ContentType.PRODUCT_DETAIL: ["id", "title", "isbn13", "publisher", "pages", "rating"],
}


def _config(ctx: typer.Context) -> Config:
    return ctx.obj["config"]


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to catalogforge.yaml"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override logging.level"
    ),
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
) -> None:
    """CatalogForge - book catalog scraper."""
    if version:
        from catalogforge import __version__

        typer.echo(f"CatalogForge {__version__}")
        raise typer.Exit()

    try:
        config = load_config(config_path)
    except CatalogForgeError as e:
        render_error(e, "While loading configuration")
        raise typer.Exit(code=1)

    level = (log_level or config.logging.level).upper()
    configure_logging(
        level=level,
        log_file=Path(config.logging.file) if config.logging.file else None,
    )
    ctx.obj = {"config": config}

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _print_outcome(content_type: ContentType, outcome: ScrapeOutcome) -> None:
    console = get_console()
    style = "green" if outcome.success else "red"
    console.print(f"[{style}]{outcome.message}[/{style}]")
    if outcome.data:
        console.print(
            records_table(content_type.value, outcome.data, COLUMNS[content_type])
        )
    for error in outcome.errors:
        console.print(f"  [yellow]- {error}[/yellow]")


def _run_scrape(
    ctx: typer.Context,
    content_type: ContentType,
    target_id: Optional[int] = None,
    show_cache: bool = False,
) -> None:
    from catalogforge.api.main import build_service

    config = _config(ctx)
    service = build_service(config)
    try:
        outcome = asyncio.run(service.trigger_scrape(content_type, target_id))
    except CatalogForgeError as e:
        render_error(e, f"While scraping {content_type.value}")
        if isinstance(e, ScrapeFailedError) and config.scraping.browser_enabled:
            tip("Run `playwright install chromium` if the browser never started")
        raise typer.Exit(code=1)
    finally:
        service.repository.close()

    _print_outcome(content_type, outcome)
    if show_cache:
        get_console().print(key_value_table("Result cache", service.cache.stats()))
    if not outcome.success:
        raise typer.Exit(code=1)


@scrape_app.command("categories")
def scrape_categories(
    ctx: typer.Context,
    show_cache: bool = typer.Option(False, "--show-cache", help="Print cache statistics"),
) -> None:
    """Scrape the category list from the origin home page."""
    _run_scrape(ctx, ContentType.CATEGORIES, show_cache=show_cache)


@scrape_app.command("products")
def scrape_products(
    ctx: typer.Context,
    category_id: int = typer.Argument(..., min=1, help="Stored category id"),
    show_cache: bool = typer.Option(False, "--show-cache", help="Print cache statistics"),
) -> None:
    """Scrape the product listing of one stored category."""
    _run_scrape(ctx, ContentType.PRODUCTS, category_id, show_cache)


@scrape_app.command("detail")
def scrape_detail(
    ctx: typer.Context,
    product_id: int = typer.Argument(..., min=1, help="Stored product id"),
    show_cache: bool = typer.Option(False, "--show-cache", help="Print cache statistics"),
) -> None:
    """Scrape one product's detail page and replace its reviews."""
    _run_scrape(ctx, ContentType.PRODUCT_DETAIL, product_id, show_cache)


@app.command("cache-stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show result cache settings and statistics.

    The cache lives in process memory, so counters start at zero for
    every CLI invocation; long-running `serve` processes accumulate them.
    """
    config = _config(ctx)
    cache = ResultCache(config.cache)
    settings = {
        "categories TTL (s)": config.cache.categories_ttl_sec,
        "products TTL (s)": config.cache.products_ttl_sec,
        "detail TTL (s)": config.cache.detail_ttl_sec,
    }
    console = get_console()
    console.print(key_value_table("Cache settings", settings))
    console.print(key_value_table("Cache statistics", cache.stats()))


@app.command("serve")
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Override api.host"),
    port: Optional[int] = typer.Option(None, "--port", help="Override api.port"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from catalogforge.api.main import create_app

    config = _config(ctx)
    uvicorn.run(
        create_app(config),
        host=host or config.api.host,
        port=port or config.api.port,
    )


def cli_main(argv: Optional[List[str]] = None) -> None:
    """Console-script entry point."""
    app(args=argv)


if __name__ == "__main__":
    cli_main()
