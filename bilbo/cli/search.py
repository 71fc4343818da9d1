"""Command-line entry point for hybrid search and RAG chat.

Usage::

    python -m bilbo.cli.search query "hobbits" --tag fantasy --author "J. R. R. Tolkien"
    python -m bilbo.cli.search query --tag fantasy --page 1
    python -m bilbo.cli.search chat "Qui est Bilbon ?"

``chat`` sends a single-turn conversation and prints the answer followed by
its numbered sources.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from bilbo.config.settings import Settings
from bilbo.main import AppContext, build_context
from bilbo.models.chat import ChatMessage, ChatRole
from bilbo.utils.errors import BilboError


async def _handle_query(args: argparse.Namespace, ctx: AppContext) -> int:
    page_size = args.page_size or ctx.settings.search_default_page_size
    result = await ctx.search.search(
        query=args.text,
        tags=args.tag,
        author=args.author,
        page=args.page,
        page_size=page_size,
    )

    print(f"{result.total} book(s) match; page {args.page} shows {len(result.hits)} hit(s)")
    for hit in result.hits:
        score = f" [{hit.score:.3f}]" if hit.score is not None else ""
        print(f"\n{hit.reference}  {hit.title}{score}")
        if hit.authors:
            print(f"  by {', '.join(hit.authors)}")
        if hit.tags:
            print(f"  tags: {', '.join(hit.tags)}")
        if hit.snippet:
            print(f"  {hit.snippet}")
    return 0


async def _handle_chat(args: argparse.Namespace, ctx: AppContext) -> int:
    history = [ChatMessage(role=ChatRole.USER, content=args.question)]
    answer = await ctx.chat.build_answer(history)

    print(answer.content)
    if answer.sources:
        print("\nSources:")
        for i, source in enumerate(answer.sources, start=1):
            print(f"  [{i}] {source.title} ({source.reference})")
    return 0


async def _dispatch(args: argparse.Namespace, settings: Settings) -> int:
    ctx = build_context(settings)
    await ctx.initialize()

    if args.command == "query":
        return await _handle_query(args, ctx)
    return await _handle_chat(args, ctx)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m bilbo.cli.search",
        description="Search the catalogue or ask a question about the books.",
    )
    subparsers = parser.add_subparsers(dest="command")

    query_parser = subparsers.add_parser("query", help="Hybrid keyword + semantic search")
    query_parser.add_argument("text", nargs="?", default="", help="Free-text query (empty browses)")
    query_parser.add_argument(
        "--tag", action="append", default=[], help="Required tag (repeatable, all must match)"
    )
    query_parser.add_argument("--author", default=None, help="Exact author name")
    query_parser.add_argument("--page", type=int, default=0, help="Zero-based page number")
    query_parser.add_argument("--page-size", type=int, default=None, help="Hits per page")

    chat_parser = subparsers.add_parser("chat", help="Ask a question answered from the books")
    chat_parser.add_argument("question", help="Question text")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for search and chat."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = asyncio.run(_dispatch(args, Settings()))
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    except BilboError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 2

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
