#!/usr/bin/env python3
"""Command line entry point for the legislation knowledge base.

Usage:
    legislation-search init
    legislation-search ingest --file bill.txt --title "The Digital Data Bill" --reference "12 of 2024"
    legislation-search query "What are the privacy rights?" --limit 3
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from legislation_search.config import get_settings
from legislation_search.models.search import SearchHit
from legislation_search.services.retrieval_pipeline import RetrievalPipeline, build_pipeline
from legislation_search.utils.errors import SearchServiceException
from legislation_search.utils.logging import get_logger, setup_logging

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="legislation-search",
        description="Legislation knowledge base: index bills and search them by meaning",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Drop and recreate the vector collection
  legislation-search init

  # Index a bill from extracted text
  legislation-search ingest --file bill.txt --title "The Telecommunications Bill" --reference "44 of 2023" --year 2023

  # Ask a question
  legislation-search query "Who can intercept messages?" --limit 5
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override LOG_LEVEL for this run",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Initialize (drop and recreate) the vector collection")

    ingest = subparsers.add_parser("ingest", help="Index a document from a text file")
    ingest.add_argument("--file", required=True, type=Path, help="UTF-8 text file with the document text")
    ingest.add_argument("--title", required=True, help="Document title")
    ingest.add_argument("--reference", required=True, help="Reference number (e.g. bill number)")
    ingest.add_argument("--year", type=int, default=None, help="Year of introduction")
    ingest.add_argument("--document-id", default=None, help="Document UUID (generated when omitted)")

    query = subparsers.add_parser("query", help="Search the knowledge base")
    query.add_argument("query", help="The question to ask")
    query.add_argument(
        "--limit",
        type=int,
        default=get_settings().search.default_limit,
        help="Number of results to return",
    )
    return parser


def print_results(query: str, hits: List[SearchHit]) -> None:
    print("\n" + "=" * 80)
    print(f'Search Results for: "{query}"')
    print("=" * 80)

    if not hits:
        print("\nNo results found. Try ingesting some documents first with:")
        print("  legislation-search ingest --file <path> --title <title> --reference <number>")
        return

    for position, hit in enumerate(hits, start=1):
        print(f"\n[Result {position}] Score: {hit.score:.4f}")
        print(f"Document: {hit.document_title} ({hit.document_reference})")
        print(f"Section: {hit.chunk_label}")
        print(f"\nContent:\n{hit.text}")
        print("-" * 80)


async def run(args: argparse.Namespace, pipeline: RetrievalPipeline) -> None:
    if args.command == "init":
        logger.info("Initializing vector database...")
        await pipeline.initialize()
        print(f"Collection '{pipeline.qdrant_service.collection_name}' initialized")
    elif args.command == "ingest":
        text = args.file.read_text(encoding="utf-8")
        result = await pipeline.ingest(
            document_id=args.document_id,
            document_title=args.title,
            document_reference=args.reference,
            raw_text=text,
            year=args.year,
        )
        print(
            f"Indexed {result.chunk_count} chunks for '{args.title}' "
            f"(document_id={result.document_id}, batches={len(result.batches)})"
        )
    elif args.command == "query":
        hits = await pipeline.query(args.query, args.limit)
        print_results(args.query, hits)


def main(argv: Optional[List[str]] = None, pipeline: Optional[RetrievalPipeline] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(force=args.log_level is not None, level=args.log_level)
    pipeline = pipeline or build_pipeline()

    try:
        asyncio.run(run(args, pipeline))
    except SearchServiceException as e:
        print(f"Error: {e.message} ({e.code})", file=sys.stderr)
        if e.details:
            print(f"Details: {e.details}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
