"""Command-line ingestion of a document directory into the vector index.

Usage:
    docsbot-ingest ./docs
    docsbot-ingest ./docs --pattern "**/*.md" --index my_docs
"""

import argparse
import logging
import sys
from dataclasses import replace

from dotenv import load_dotenv

from docsbot.config import Settings
from docsbot.rag.errors import DocsBotError
from docsbot.rag.loader import load_directory
from docsbot.rag.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsbot-ingest",
        description="Chunk, embed and upsert documents into the vector index.",
    )
    parser.add_argument("directory", help="Directory containing .txt, .md or .pdf files")
    parser.add_argument("--pattern", default="**/*", help="Glob pattern relative to the directory")
    parser.add_argument("--index", default=None, help="Override INDEX_NAME")
    return parser


def run(args: argparse.Namespace, settings: Settings) -> int:
    if args.index:
        settings = replace(settings, index_name=args.index)

    docs = load_directory(args.directory, args.pattern)
    if not docs:
        logger.warning(f"No supported documents found in {args.directory}")
        return 0

    ingestion = IngestionPipeline(settings)
    ingestion.ensure_index()
    return ingestion.update_index(docs)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        count = run(args, settings)
    except (DocsBotError, OSError) as e:
        logger.error(f"Ingestion failed: {e}")
        return 1
    print(f"Upserted {count} vectors into {args.index or settings.index_name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
