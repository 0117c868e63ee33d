"""Add and fetch documents in the SQLite document store."""

# ruff: noqa: T201  # CLI intentionally prints operator feedback

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path
import sys
import textwrap

import orjson

from tinysearch.config import Settings
from tinysearch.documents.store import SqliteDocumentStore
from tinysearch.errors import DocumentValidationError


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage documents in the tinysearch document store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """
            Examples:
              tinysearch-documents add --title "Hello" --body "World"
              tinysearch-documents batch --file docs.json
              tinysearch-documents get 42
            """
        ).strip(),
    )
    parser.add_argument("--database", type=Path, help="SQLite document store (default: DATABASE_PATH)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser("add", help="Insert a single document")
    add.add_argument("--title", required=True)
    add.add_argument("--body", required=True)
    add.add_argument("--created-at", help="ISO-8601 timestamp (default: now)")

    batch = subparsers.add_parser("batch", help="Insert documents from a JSON array file")
    batch.add_argument(
        "--file",
        type=Path,
        required=True,
        help='JSON file holding [{"title": ..., "body": ...}, ...] ("-" reads stdin)',
    )

    get = subparsers.add_parser("get", help="Print one document by id")
    get.add_argument("id", type=int)
    return parser


def _read_batch(path: Path) -> object:
    raw = sys.stdin.buffer.read() if str(path) == "-" else path.read_bytes()
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise DocumentValidationError(f"{path} is not valid JSON: {exc}") from exc


def _emit(payload: object) -> None:
    print(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    store = SqliteDocumentStore(args.database or settings.database_path)
    try:
        if args.command == "add":
            document = store.insert_document(args.title, args.body, args.created_at)
            _emit({"document": document.model_dump(mode="json")})
        elif args.command == "batch":
            documents = _read_batch(args.file)
            if isinstance(documents, dict):
                documents = documents.get("documents", documents.get("docs"))
            inserted = store.insert_documents(documents if documents is not None else [])
            _emit({"documents": [doc.model_dump(mode="json") for doc in inserted], "count": len(inserted)})
        else:
            document = store.get_document(args.id)
            if document is None:
                print(f"Document {args.id} not found", file=sys.stderr)
                return 1
            _emit({"document": document.model_dump(mode="json")})
    except DocumentValidationError as exc:
        print(f"Invalid document: {exc}", file=sys.stderr)
        return 1
    except FileNotFoundError as exc:
        print(f"File not found: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
