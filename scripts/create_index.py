#!/usr/bin/env python
"""Create an empty cosine-similarity index on disk.

Usage:
    python scripts/create_index.py            # Create if missing
    python scripts/create_index.py --force    # Replace an existing index
"""
import argparse
import sys
from pathlib import Path

from rightsteps import config
from rightsteps.rag.store_faiss import FAISSVectorStore, METRIC


def main():
    parser = argparse.ArgumentParser(description="Create the vector index")
    parser.add_argument(
        "--index-dir",
        type=Path,
        default=config.VECTOR_STORE_DIR,
        help=f"Index directory (default: {config.VECTOR_STORE_DIR})",
    )
    parser.add_argument(
        "--dimension",
        type=int,
        default=config.EMBEDDING_DIMENSION,
        help=f"Embedding dimension (default: {config.EMBEDDING_DIMENSION})",
    )
    parser.add_argument("--force", action="store_true", help="Overwrite an existing index")
    args = parser.parse_args()

    store = FAISSVectorStore(dimension=args.dimension, index_dir=args.index_dir)

    if store.index_path.exists() and not args.force:
        print(f"Index already exists at {store.index_path} (use --force to replace)")
        return

    print(f"Creating index at {args.index_dir} (dimension={args.dimension}, metric={METRIC})...")

    try:
        store.init_new_index()
        store.save_index()
    except RuntimeError as e:
        print(f"Error creating index: {e}")
        sys.exit(1)

    print("Index created successfully.")


if __name__ == "__main__":
    main()
