"""CLI entry point for babble."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click

from babble import __version__
from babble.config import BabbleConfig, load_config, open_store
from babble.fetcher import HttpPageFetcher, RateLimitedFetcher
from babble.generate import babble_text
from babble.pipeline import (
    DocumentSource,
    IngestionPipeline,
    IngestionStats,
    ListingDocumentSource,
    TextFileSource,
)
from babble.store import MemoryTransitionStore
from babble.store.base import TransitionStore
from babble.text.tokenize import normalize
from babble.utils.logging import configure_logging, get_logger, new_run_id, set_run_context
from babble.utils.result import ExitCode


class Context:
    """CLI context for sharing state between commands."""

    def __init__(self, config: BabbleConfig, dry_run: bool) -> None:
        self.config = config
        self.dry_run = dry_run
        self.logger = get_logger("cli")


pass_context = click.make_pass_decorator(Context)


def output_json(data: dict) -> None:
    """Output JSON to stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to YAML config file (default: ./babble.yaml)",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default=None,
    help="Logging level",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"], case_sensitive=False),
    default=None,
    help="Log format",
)
@click.option("--order", type=int, default=None, help="Markov chain order")
@click.option(
    "--backend",
    type=click.Choice(["memory", "redis"], case_sensitive=False),
    default=None,
    help="Transition store backend",
)
@click.option("--namespace", default=None, help="Key prefix for the redis backend")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Show what would be done without executing",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[Path],
    log_level: Optional[str],
    log_format: Optional[str],
    order: Optional[int],
    backend: Optional[str],
    namespace: Optional[str],
    dry_run: bool,
) -> None:
    """
    babble - Markov chain text generation from paginated sources.

    Learns order-n transitions from documents pulled through a rate-limited
    fetcher and samples plausible token sequences from them.
    """
    result = load_config(config_path)
    if result.is_err():
        click.echo(str(result.unwrap_err()), err=True)
        ctx.exit(ExitCode.CONFIG_ERROR)
    config = result.unwrap().with_overrides(order=order, backend=backend, namespace=namespace)
    validation = config.validate()
    if validation.is_err():
        click.echo(str(validation.unwrap_err()), err=True)
        ctx.exit(ExitCode.CONFIG_ERROR)

    configure_logging(
        level=log_level or config.logging.level,
        format_type=log_format or config.logging.format,
    )
    set_run_context(new_run_id())

    ctx.obj = Context(config=config, dry_run=dry_run)


def build_sources(
    config: BabbleConfig,
    fetcher: RateLimitedFetcher,
    categories: tuple[str, ...],
    files: tuple[Path, ...],
    max_documents: Optional[int],
) -> list[DocumentSource]:
    """One listing source per category plus one source for all files."""
    limit = max_documents if max_documents is not None else config.pipeline.max_documents
    sources: list[DocumentSource] = [
        ListingDocumentSource(
            fetcher,
            config.fetch.base_url,
            category,
            max_documents=limit,
        )
        for category in categories
    ]
    if files:
        sources.append(TextFileSource(files, max_documents=limit))
    return sources


async def run_ingestion(
    config: BabbleConfig,
    store: TransitionStore,
    categories: tuple[str, ...],
    files: tuple[Path, ...],
    max_documents: Optional[int] = None,
) -> IngestionStats:
    """Ingest every category and file into store through one shared fetcher."""
    page_fetcher = HttpPageFetcher(
        user_agent=config.fetch.user_agent,
        timeout=config.fetch.timeout,
        page_size=config.fetch.page_size,
        cursor_param=config.fetch.cursor_param,
    )
    try:
        async with RateLimitedFetcher(page_fetcher, config.fetch.min_interval) as fetcher:
            sources = build_sources(config, fetcher, categories, files, max_documents)
            pipeline = IngestionPipeline(
                store,
                sources,
                channel_size=config.pipeline.channel_size,
            )
            return await pipeline.run()
    finally:
        await page_fetcher.aclose()


async def generate_many(
    store: TransitionStore,
    length: int,
    count: int,
    seed: Optional[tuple[str, ...]] = None,
) -> list[str]:
    """Generate count texts; stops early if the store is empty."""
    texts = []
    for _ in range(count):
        text = await babble_text(store, length, seed=seed)
        if text is None:
            break
        texts.append(text)
    return texts


def parse_seed(seed: Optional[str]) -> Optional[tuple[str, ...]]:
    """Tokenize a seed the same way ingested documents are tokenized."""
    if not seed:
        return None
    return tuple(normalize(seed)) or None


source_options = [
    click.option(
        "--category",
        "-c",
        "categories",
        multiple=True,
        help="Topic or category to pull from the listing source (can be repeated)",
    ),
    click.option(
        "--file",
        "-f",
        "files",
        multiple=True,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Local text file to ingest (can be repeated)",
    ),
    click.option(
        "--max-documents",
        type=int,
        default=None,
        help="Maximum documents per source",
    ),
]


def with_source_options(fn):
    for option in reversed(source_options):
        fn = option(fn)
    return fn


@cli.command()
@with_source_options
@pass_context
def ingest(
    ctx: Context,
    categories: tuple[str, ...],
    files: tuple[Path, ...],
    max_documents: Optional[int],
) -> None:
    """Ingest documents into the configured store."""
    config = ctx.config
    ctx.logger.info(
        "ingest_started",
        categories=list(categories),
        files=[str(f) for f in files],
        backend=config.store.backend,
    )

    if not categories and not files:
        output_json({
            "status": "error",
            "message": "Nothing to ingest. Pass --category or --file.",
        })
        sys.exit(ExitCode.GENERAL_ERROR)

    if ctx.dry_run:
        output_json({
            "status": "dry_run",
            "message": "Would ingest documents",
            "categories": list(categories),
            "files": [str(f) for f in files],
            "backend": config.store.backend,
            "order": config.chain.order,
        })
        return

    async def _run() -> IngestionStats:
        store = open_store(config)
        try:
            return await run_ingestion(config, store, categories, files, max_documents)
        finally:
            await store.aclose()

    try:
        stats = asyncio.run(_run())
    except Exception as e:
        ctx.logger.error("ingestion_failed", error=str(e))
        output_json({
            "status": "error",
            "message": f"Ingestion failed: {e}",
        })
        sys.exit(ExitCode.INGESTION_FAILED)

    output_json({
        "status": "success" if stats.success else "partial",
        "message": f"Stored {stats.inserted} transitions from {stats.documents} documents",
        **stats.to_dict(),
    })


@cli.command()
@click.option("--length", type=int, default=40, help="Maximum generated tokens per text")
@click.option("--count", type=int, default=1, help="Number of texts to generate")
@click.option("--seed", default=None, help="Starting context, tokenized like ingested text")
@pass_context
def generate(
    ctx: Context,
    length: int,
    count: int,
    seed: Optional[str],
) -> None:
    """Print generated text from the configured store."""
    config = ctx.config
    if config.store.backend == "memory":
        click.echo(
            "The memory backend starts empty; use 'babble babble' or --backend redis.",
            err=True,
        )
        sys.exit(ExitCode.GENERAL_ERROR)

    async def _run() -> list[str]:
        store = open_store(config)
        try:
            return await generate_many(store, length, count, parse_seed(seed))
        finally:
            await store.aclose()

    try:
        texts = asyncio.run(_run())
    except Exception as e:
        ctx.logger.error("generation_failed", error=str(e))
        click.echo(f"Generation failed: {e}", err=True)
        sys.exit(ExitCode.GENERATION_FAILED)

    if not texts:
        click.echo("Store is empty. Run 'babble ingest' first.", err=True)
        sys.exit(ExitCode.GENERATION_FAILED)
    for text in texts:
        click.echo(text)


@cli.command(name="babble")
@with_source_options
@click.option("--length", type=int, default=40, help="Maximum generated tokens per text")
@click.option("--count", type=int, default=5, help="Number of texts to generate")
@pass_context
def babble_cmd(
    ctx: Context,
    categories: tuple[str, ...],
    files: tuple[Path, ...],
    max_documents: Optional[int],
    length: int,
    count: int,
) -> None:
    """Ingest into a fresh in-memory store, then print generated text."""
    if not categories and not files:
        click.echo("Nothing to ingest. Pass --category or --file.", err=True)
        sys.exit(ExitCode.GENERAL_ERROR)

    config = ctx.config
    store = MemoryTransitionStore(config.chain.order)

    async def _run() -> list[str]:
        await run_ingestion(config, store, categories, files, max_documents)
        return await generate_many(store, length, count)

    try:
        texts = asyncio.run(_run())
    except Exception as e:
        ctx.logger.error("babble_failed", error=str(e))
        click.echo(f"Failed: {e}", err=True)
        sys.exit(ExitCode.GENERAL_ERROR)

    for text in texts:
        click.echo(text)


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        logger = get_logger("cli")
        logger.error("cli_error", error=str(e))
        sys.exit(2)


if __name__ == "__main__":
    main()
