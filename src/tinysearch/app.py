"""Starlette application exposing search, document ingestion and index rebuilds."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

import anyio.to_thread
import orjson
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Match, Route

from tinysearch.config import Settings
from tinysearch.documents.store import SqliteDocumentStore
from tinysearch.errors import (
    DocumentValidationError,
    IndexBuildError,
    IndexNotReadyError,
    QueryValidationError,
)
from tinysearch.observability import (
    REQUEST_COUNT,
    configure_logging,
    configure_trace_exporter,
    get_metrics,
    get_metrics_content_type,
    init_tracing,
)
from tinysearch.observability.tracing import TraceContextMiddleware, trace_request
from tinysearch.search.builder import IndexBuildOptions
from tinysearch.service_layer.search_service import SearchService


if TYPE_CHECKING:
    from starlette.requests import Request


logger = logging.getLogger(__name__)

DEMO_DOCUMENTS = (
    {"id": 1, "text": "the quick brown fox jumps over the lazy dog"},
    {"id": 2, "text": "the quick red fox leaped over the sleeping cat"},
    {"id": 3, "text": "cats and dogs can be friends"},
)


def _error(status_code: int, error: str, message: str | None = None, **extra: Any) -> JSONResponse:
    payload: dict[str, Any] = {"error": error}
    if message is not None:
        payload["message"] = message
    payload.update(extra)
    return JSONResponse(payload, status_code=status_code)


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise DocumentValidationError(f"Request body is not valid JSON: {exc}") from exc


def _document_fields(data: Any) -> Any:
    """Map loosely shaped request documents onto store fields."""
    if not isinstance(data, dict):
        return data
    return {
        "title": data.get("title"),
        "body": data.get("body", data.get("content")),
        "created_at": data.get("created_at", data.get("createdAt")),
    }


class AppBuilder:
    """Builds the ASGI app around one search service and one document store."""

    def __init__(
        self,
        settings: Settings | None = None,
        service: SearchService | None = None,
        store: SqliteDocumentStore | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store if store is not None else SqliteDocumentStore(self.settings.database_path)
        self.service = service or SearchService(
            tokenize_options=self.settings.tokenize_options(),
            document_lookup=self._lookup_text,
        )
        self._rebuild_lock = threading.Lock()

    def build(self) -> Starlette:
        """Bootstrap the live index and return the Starlette application."""

        self._bootstrap_index()
        app = Starlette(
            debug=self.settings.log_level == "debug",
            routes=self._build_routes(),
            exception_handlers=self._build_exception_handlers(),
        )
        app.add_middleware(BaseHTTPMiddleware, dispatch=self._count_requests)
        app.add_middleware(BaseHTTPMiddleware, dispatch=trace_request)
        app.add_middleware(TraceContextMiddleware)
        app.state.search_service = self.service
        app.state.document_store = self.store
        logger.info("tinysearch initialized (index ready=%s)", self.service.is_ready)
        return app

    def _lookup_text(self, doc_id: int) -> str | None:
        document = self.store.get_document(doc_id)
        return document.content if document else None

    def _bootstrap_index(self) -> None:
        if self.service.is_ready:
            return
        if self.settings.index_load_path is not None:
            self.service.load_artifact(self.settings.index_load_path)
        elif self.settings.should_seed():
            self.service.index_documents(DEMO_DOCUMENTS)
        else:
            logger.warning("Starting without an index; /search answers 503 until /index/rebuild runs")

    def _build_routes(self) -> list[Route]:
        return [
            Route("/health", endpoint=self._build_health_endpoint(), methods=["GET"]),
            Route("/search", endpoint=self._build_search_endpoint(), methods=["GET"]),
            Route("/documents", endpoint=self._build_create_document_endpoint(), methods=["POST"]),
            Route("/documents/batch", endpoint=self._build_create_documents_batch_endpoint(), methods=["POST"]),
            Route("/documents/{doc_id}", endpoint=self._build_get_document_endpoint(), methods=["GET"]),
            Route("/index/rebuild", endpoint=self._build_rebuild_endpoint(), methods=["POST"]),
            Route("/metrics", endpoint=self._build_metrics_endpoint(), methods=["GET"]),
        ]

    def _build_exception_handlers(self) -> dict:
        async def query_error(_: Request, exc: QueryValidationError) -> JSONResponse:
            return _error(400, exc.code, exc.message)

        async def document_error(_: Request, exc: DocumentValidationError) -> JSONResponse:
            return _error(400, "bad_request", str(exc))

        async def not_ready(_: Request, exc: IndexNotReadyError) -> JSONResponse:
            return _error(503, "index_not_ready", str(exc))

        async def build_failed(_: Request, exc: IndexBuildError) -> JSONResponse:
            logger.error("Index rebuild failed: %s", exc)
            return _error(500, "index_build_failed", str(exc), lastSeenId=exc.last_seen_id)

        async def http_error(_: Request, exc: HTTPException) -> JSONResponse:
            if exc.status_code == 404:
                return _error(404, "not_found")
            return _error(exc.status_code, "http_error", exc.detail)

        async def unhandled(request: Request, exc: Exception) -> JSONResponse:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return _error(500, "internal_server_error")

        return {
            QueryValidationError: query_error,
            DocumentValidationError: document_error,
            IndexNotReadyError: not_ready,
            IndexBuildError: build_failed,
            HTTPException: http_error,
            Exception: unhandled,
        }

    async def _count_requests(self, request: Request, call_next):
        response = await call_next(request)
        REQUEST_COUNT.labels(route=self._route_label(request), status=str(response.status_code)).inc()
        return response

    @staticmethod
    def _route_label(request: Request) -> str:
        for route in request.app.routes:
            match, _ = route.matches(request.scope)
            if match is Match.FULL:
                return route.path
        return "unmatched"

    def _build_health_endpoint(self):
        async def health_endpoint(_: Request) -> JSONResponse:
            return JSONResponse({"ok": True, "index": self.service.status().model_dump(by_alias=True)})

        return health_endpoint

    def _build_search_endpoint(self):
        async def search_endpoint(request: Request) -> JSONResponse:
            params = request.query_params
            include = (params.get("include") or "").lower()
            response = self.service.search(
                params.get("q") or "",
                mode=params.get("mode"),
                limit=params.get("limit"),
                include_snippets=include == "snippet",
                highlight=params.get("highlight") or None,
            )
            return JSONResponse(response.to_payload())

        return search_endpoint

    def _build_create_document_endpoint(self):
        async def create_document_endpoint(request: Request) -> JSONResponse:
            data = await _read_json(request) or {}
            fields = _document_fields(data)
            if not isinstance(fields, dict):
                raise DocumentValidationError("document must be an object")
            document = self.store.insert_document(fields["title"], fields["body"], fields["created_at"])
            return JSONResponse({"document": document.model_dump(mode="json")}, status_code=201)

        return create_document_endpoint

    def _build_create_documents_batch_endpoint(self):
        async def create_documents_batch_endpoint(request: Request) -> JSONResponse:
            data = await _read_json(request) or {}
            if not isinstance(data, dict):
                raise DocumentValidationError("request body must be an object")
            docs = data.get("documents", data.get("docs"))
            if docs is None:
                docs = []
            if not isinstance(docs, list):
                raise DocumentValidationError("documents must be an array")
            inserted = self.store.insert_documents([_document_fields(doc) for doc in docs])
            return JSONResponse(
                {"documents": [doc.model_dump(mode="json") for doc in inserted], "count": len(inserted)},
                status_code=201,
            )

        return create_documents_batch_endpoint

    def _build_get_document_endpoint(self):
        async def get_document_endpoint(request: Request) -> JSONResponse:
            document = self.store.get_document(request.path_params["doc_id"])
            if document is None:
                return _error(404, "not_found")
            return JSONResponse({"document": document.model_dump(mode="json")})

        return get_document_endpoint

    def _build_rebuild_endpoint(self):
        async def rebuild_endpoint(_: Request) -> JSONResponse:
            if not self._rebuild_lock.acquire(blocking=False):
                return _error(409, "rebuild_in_progress", "an index rebuild is already running")
            options = IndexBuildOptions(
                batch_size=self.settings.index_batch_size,
                artifact_path=self.settings.index_persist_path,
                tokenize_options=self.service.tokenize_options,
            )
            try:
                index = await anyio.to_thread.run_sync(self.service.rebuild, self.store, options)
            finally:
                self._rebuild_lock.release()
            return JSONResponse({"ok": True, "docCount": index.doc_count, "termCount": index.term_count})

        return rebuild_endpoint

    def _build_metrics_endpoint(self):
        async def metrics_endpoint(_: Request) -> Response:
            return Response(content=get_metrics(), media_type=get_metrics_content_type())

        return metrics_endpoint


def create_app(
    settings: Settings | None = None,
    service: SearchService | None = None,
    store: SqliteDocumentStore | None = None,
) -> Starlette:
    """Create the application; collaborators default to ones built from ``settings``."""
    return AppBuilder(settings, service, store).build()


def main() -> None:
    """Main entry point for the search server."""
    import uvicorn

    settings = Settings()
    configure_logging(level=settings.log_level, json_output=settings.log_json, access_log=settings.access_log)
    init_tracing(service_name="tinysearch")
    configure_trace_exporter(settings.otlp_endpoint, settings.otlp_protocol)

    app = create_app(settings)

    logger.info("Starting server on %s:%d", settings.host, settings.port)
    logger.info("Health check: http://%s:%d/health", settings.host, settings.port)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        log_config=None,
    )


if __name__ == "__main__":
    main()
