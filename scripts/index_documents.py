#!/usr/bin/env python
"""Index a directory of .md / .txt documents for the RAG pipeline.

Usage:
    python scripts/index_documents.py docs/             # Index (replace per file)
    python scripts/index_documents.py docs/ --rebuild   # Clear the index first
    python scripts/index_documents.py docs/ --verbose   # Show detailed progress
"""
import argparse
import asyncio
import sys
from pathlib import Path
from datetime import datetime

import structlog

from rightsteps import config
from rightsteps.pipeline import build_pipeline
from rightsteps.rag.ingest import DirectoryIngest

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, file_path: Path):
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {file_path.name[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, stats: dict):
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Indexing Complete!")
        print(f"{'=' * 60}\n")
        print(f"  Files processed:  {stats['files_processed']}")
        print(f"  Files failed:     {stats['files_failed']}")
        print(f"  Chunks created:   {stats['chunks_created']}")
        print(f"  Chunks stored:    {stats['chunks_stored']}")
        print(f"  Time elapsed:     {elapsed_seconds:.1f}s")

        if stats["chunks_stored"] > 0 and elapsed_seconds > 0:
            print(f"  Indexing rate:    {stats['chunks_stored'] / elapsed_seconds:.1f} chunks/sec")

        print(f"\n{'=' * 60}\n")

        if stats["files_failed"] > 0:
            print(f"Warning: {stats['files_failed']} file(s) failed to index. Check logs for details.\n")


async def main():
    parser = argparse.ArgumentParser(
        description="Index .md / .txt documents into the vector store",
    )
    parser.add_argument("docs_dir", type=Path, help="Directory containing documents")
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Clear the whole index before indexing",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose progress")
    parser.add_argument(
        "--provider",
        choices=["gemini", "ollama"],
        default=None,
        help=f"Model provider (default: {config.LLM_PROVIDER})",
    )
    args = parser.parse_args()

    progress = ProgressReporter(verbose=args.verbose)

    try:
        print("\nConfiguration:")
        print(f"   Documents directory: {args.docs_dir}")
        print(f"   Index directory:     {config.VECTOR_STORE_DIR}")
        print(f"   Provider:            {args.provider or config.LLM_PROVIDER}")
        print(f"   Chunk size:          {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:       {config.CHUNK_OVERLAP} chars")

        pipeline = build_pipeline(provider=args.provider, rag_enabled=True)

        if args.rebuild:
            pipeline.store.init_new_index()
            pipeline.store.save_index()
            print("\nRebuild mode: existing index cleared.")

        progress.start("Rebuilding Index" if args.rebuild else "Indexing Documents")

        ingest = DirectoryIngest(pipeline, args.docs_dir)
        stats = await ingest.ingest_all(
            progress_callback=progress.update if not args.verbose else None,
        )

        progress.finish(stats)

        if stats["files_failed"] > 0:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nIndexing cancelled by user.\n")
        sys.exit(1)

    except FileNotFoundError as e:
        print(f"\nError: {e}\n")
        sys.exit(1)

    except Exception as e:
        print(f"\nError: {e}\n")
        logger.error("index_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
