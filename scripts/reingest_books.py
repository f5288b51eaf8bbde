#!/usr/bin/env python3
"""
Re-ingest every catalogue book into the Pinecone index.

This script:
1. Wipes the existing index (skip with --no-wipe)
2. Builds descriptive chunks for each book
3. Embeds each chunk with Gemini (with a short pause between calls)
4. Upserts the vectors as book-<id>-chunk-<n>

Run: python scripts/reingest_books.py

Prerequisites:
- GEMINI_API_KEY and PINECONE_API_KEY set
- PINECONE_HOST (or PINECONE_INDEX_NAME + PINECONE_ENVIRONMENT) set
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def reingest_books(wipe: bool) -> bool:
    """Re-index the seed catalogue. Returns True when every book was stored."""
    from src.config import Settings
    from src.errors import ConfigurationError
    from src.pipelines.ingestion import BookIngestor
    from src.rag.embedding import EmbeddingClient
    from src.rag.records import SEED_BOOKS
    from src.rag.vector_store import VectorIndexClient

    print("=" * 60)
    print("Pustaka Book Re-ingestion")
    print("=" * 60)

    settings = Settings.from_env()
    try:
        vector_index = VectorIndexClient.from_settings(settings)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return False
    print(f"Pinecone Base URL: {vector_index.base_url}")

    ingestor = BookIngestor(
        embedding_client=EmbeddingClient.from_settings(settings),
        vector_index=vector_index,
    )
    report = await ingestor.reingest(SEED_BOOKS, wipe=wipe)

    if report.wipe_error:
        print(f"Failed to wipe index: {report.wipe_error}")
    print(f"Books processed:  {report.books_total}")
    print(f"Vectors upserted: {report.vectors_upserted}")
    if report.failed_books:
        print(f"Failed book IDs:  {report.failed_books}")
        return False

    print("Re-ingestion completed!")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Re-ingest all books into Pinecone")
    parser.add_argument(
        "--no-wipe",
        action="store_true",
        help="Keep existing vectors instead of wiping the index first",
    )
    args = parser.parse_args()
    ok = asyncio.run(reingest_books(wipe=not args.no_wipe))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
