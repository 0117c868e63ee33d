"""Build the inverted index from the SQLite document store.

Prints a JSON summary followed by the first ten terms (lexicographic) with
up to five postings each, so operators can eyeball a build without loading
the artifact.
"""

# ruff: noqa: T201  # CLI intentionally prints operator feedback

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path
import sys
import textwrap

import orjson

from tinysearch.cli import positive_int
from tinysearch.config import Settings
from tinysearch.documents.store import SqliteDocumentStore
from tinysearch.errors import IndexBuildError, SourceDataError
from tinysearch.observability.logging import configure_logging
from tinysearch.search.builder import IndexBuilder, IndexBuildOptions
from tinysearch.search.inverted_index import InvertedIndex


SAMPLE_TERMS = 10
SAMPLE_POSTINGS = 5


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build the tinysearch inverted index from the document store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """
            Examples:
              tinysearch-index
              tinysearch-index --batch-size 500 --persist-path ./data/index.json
              tinysearch-index --database ./data/documents.sqlite3
            """
        ).strip(),
    )
    parser.add_argument(
        "--batch-size",
        type=positive_int,
        help="Documents fetched per keyset page (default: INDEX_BATCH_SIZE or 1000)",
    )
    parser.add_argument(
        "--persist-path",
        type=Path,
        help="Write the serialized index here (default: INDEX_PERSIST_PATH, if set)",
    )
    parser.add_argument(
        "--database",
        type=Path,
        help="SQLite document store (default: DATABASE_PATH)",
    )
    return parser


def format_summary(index: InvertedIndex) -> list[str]:
    """Render the summary block printed after a build."""
    summary = {"docCount": index.doc_count, "termCount": index.term_count}
    lines = [orjson.dumps(summary, option=orjson.OPT_INDENT_2).decode()]
    for term in index.terms()[:SAMPLE_TERMS]:
        sample = [posting.to_dict() for posting in index.postings_for(term)[:SAMPLE_POSTINGS]]
        lines.append(f"{term} {orjson.dumps(sample).decode()}")
    return lines


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(level=settings.log_level, json_output=settings.log_json)

    options = IndexBuildOptions(
        batch_size=args.batch_size or settings.index_batch_size,
        artifact_path=args.persist_path or settings.index_persist_path,
        tokenize_options=settings.tokenize_options(),
    )
    store = SqliteDocumentStore(args.database or settings.database_path)
    try:
        index = IndexBuilder(store, options).build()
    except IndexBuildError as exc:
        print(f"Index build failed after id {exc.last_seen_id}: {exc}", file=sys.stderr)
        return 1
    except SourceDataError as exc:
        print(f"Document store returned malformed data: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()

    for line in format_summary(index):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
