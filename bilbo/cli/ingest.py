"""Command-line entry point for book ingestion and catalogue listings.

Usage::

    python -m bilbo.cli.ingest run
    python -m bilbo.cli.ingest run --data-dir /srv/books
    python -m bilbo.cli.ingest tags
    python -m bilbo.cli.ingest authors
    python -m bilbo.cli.ingest references

``run`` ingests every ``*.md`` file of the data directory and moves each one
to ``processed/`` or ``failed/``.  The exit code is 1 when any document
failed.  Logs go to stderr; the per-document summary goes to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from bilbo.config.settings import Settings
from bilbo.main import AppContext, build_context
from bilbo.models.ingestion import IngestionState
from bilbo.utils.errors import BilboError


async def _handle_run(args: argparse.Namespace, ctx: AppContext) -> int:
    data_dir = args.data_dir or ctx.settings.data_dir
    print(f"Ingesting directory: {data_dir}")
    if ctx.embedding_provider is None:
        print("  No MISTRAL_API_KEY: metadata only, no vectors or summaries")

    report = await ctx.ingestion.ingest_directory(
        data_dir,
        processed_dirname=ctx.settings.processed_dirname,
        failed_dirname=ctx.settings.failed_dirname,
    )

    for outcome in report.outcomes:
        label = outcome.reference or "-"
        if outcome.state is IngestionState.FAILED:
            print(f"  FAILED     {outcome.source} ({label}): {outcome.error}")
        elif outcome.state is IngestionState.UNCHANGED:
            print(f"  unchanged  {outcome.source} ({label})")
        else:
            print(
                f"  {outcome.previous_state.value if outcome.previous_state else 'ok':<10} "
                f"{outcome.source} ({label}): {outcome.chunks_indexed} chunks, "
                f"{outcome.chapter_summaries} chapter summaries, {outcome.elapsed:.2f}s"
            )

    print("\nIngestion complete:")
    print(f"  Succeeded: {report.succeeded}")
    print(f"  Unchanged: {report.unchanged}")
    print(f"  Failed:    {report.failed}")
    return 1 if report.failed else 0


async def _handle_tags(ctx: AppContext) -> int:
    for tag in await ctx.book_store.list_tags():
        print(tag)
    return 0


async def _handle_authors(ctx: AppContext) -> int:
    for author in await ctx.book_store.list_authors():
        print(author)
    return 0


async def _handle_references(ctx: AppContext) -> int:
    for reference, title in await ctx.book_store.list_all_references():
        print(f"{reference}\t{title}")
    return 0


async def _dispatch(args: argparse.Namespace, settings: Settings) -> int:
    ctx = build_context(settings)
    await ctx.initialize()

    if args.command == "run":
        return await _handle_run(args, ctx)
    if args.command == "tags":
        return await _handle_tags(ctx)
    if args.command == "authors":
        return await _handle_authors(ctx)
    return await _handle_references(ctx)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m bilbo.cli.ingest",
        description="Ingest markdown books and inspect the catalogue.",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Ingest every *.md file of the data directory")
    run_parser.add_argument(
        "--data-dir", default=None, help="Directory to scan (default: DATA_DIR setting)"
    )

    subparsers.add_parser("tags", help="List tags in use")
    subparsers.add_parser("authors", help="List authors in use")
    subparsers.add_parser("references", help="List book references and titles")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ingestion and catalogue listings."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = asyncio.run(_dispatch(args, Settings()))
    except BilboError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 2

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
