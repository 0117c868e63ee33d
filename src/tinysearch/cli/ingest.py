"""Generate a deterministic synthetic corpus and load it into the document store."""

# ruff: noqa: T201  # CLI intentionally prints operator feedback

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path
import sys
import time

from tinysearch.cli import positive_int
from tinysearch.config import Settings
from tinysearch.documents.store import SqliteDocumentStore, generate_documents


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate synthetic documents and ingest them")
    parser.add_argument("--n", type=positive_int, default=1000, help="Number of documents (default: 1000)")
    parser.add_argument("--seed", default="seed", help="RNG seed string (default: seed)")
    parser.add_argument("--batch-size", type=positive_int, default=1000, help="Rows per insert (default: 1000)")
    parser.add_argument(
        "--reset",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Empty the store before ingesting (default: --reset)",
    )
    parser.add_argument("--database", type=Path, help="SQLite document store (default: DATABASE_PATH)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    store = SqliteDocumentStore(args.database or settings.database_path)
    try:
        if args.reset:
            store.reset()

        started = time.perf_counter()
        documents = generate_documents(args.n, args.seed)
        inserted = 0
        for offset in range(0, len(documents), args.batch_size):
            inserted += store.upsert_generated(documents[offset : offset + args.batch_size])
            if inserted % (args.batch_size * 10) == 0 or inserted == args.n:
                print(f"Inserted {inserted}/{args.n} docs")
        elapsed_ms = (time.perf_counter() - started) * 1000
        print(f"Done. Inserted {args.n} docs in {elapsed_ms:.0f} ms")
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
