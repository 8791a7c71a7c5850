"""Content-addressed file server authorized by Nostr events.

Routes:

* ``HEAD /file/{hash}``, ``GET /file/{hash}``: public reads.
* ``PUT /file/{hash}``: upload, restricted to ``admin`` and ``user`` roles.
  The body must hash to ``{hash}``. A provenance sidecar is written in the
  background after the response.
* ``DELETE /file/{hash}``: restricted to admins, the publisher of the
  provenance event and its NIP-26 delegator.
* ``GET /health``: liveness.

Every mutating request is authenticated with a NIP-98 ``Authorization``
header bound to the request method and URL (and the body, when the signer
includes a ``payload`` tag). Failures are raised as
[RequestError][banbooru.core.exceptions.RequestError] subclasses and turned
into plain-text responses by a single exception handler.

The HTTP server runs as a background ``asyncio.Task`` alongside the
standard ``run_forever()`` cycle. Each ``run()`` cycle logs request
statistics and updates Prometheus metrics.

See Also:
    [banbooru.services.server.policy][]: Write and delete gates.
    [ProvenanceJob][banbooru.services.server.provenance.ProvenanceJob]:
        Background sidecar writer.
    [BaseService][banbooru.core.base_service.BaseService]: Abstract base
        class providing lifecycle and metrics.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING, Any, ClassVar

import uvicorn
from fastapi import BackgroundTasks, FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from banbooru.core.base_service import BaseService
from banbooru.core.exceptions import (
    ConflictError,
    NotFoundError,
    RequestError,
    StorageError,
    ValidationError,
)
from banbooru.models.constants import (
    DEFAULT_CONTENT_TYPE,
    HEX_KEY_PATTERN,
    EventKind,
    ServiceName,
)
from banbooru.models.stored_object import PutOptions
from banbooru.nips.nip26 import validate_delegation
from banbooru.nips.nip98 import authenticate
from banbooru.stores.blob import create_blob_store
from banbooru.stores.roles import PostgresRoleStore, create_role_store, resolve_role

from .configs import FileServerConfig
from .policy import authorize_delete, authorize_write, enforce
from .provenance import (
    DELEGATION_HEADER,
    ProvenanceJob,
    file_url,
    load_provenance,
    metadata_key,
    parse_delegation_header,
)


if TYPE_CHECKING:
    from types import TracebackType

    from banbooru.models.event import AuthEvent, DelegationTag
    from banbooru.stores.blob import BlobStore
    from banbooru.stores.roles import RoleStore

_HTTP_ERROR_THRESHOLD = 400
_SERVER_ERROR = "Server error"


class FileServer(BaseService[FileServerConfig]):
    """Content-addressed file server.

    Lifecycle:
        1. ``__aenter__``: connect the role store pool (postgres backend),
           build the FastAPI app, start uvicorn.
        2. ``run()``: log statistics and update Prometheus counters.
        3. ``__aexit__``: cancel the HTTP server task, close the pool.

    Args:
        config: Service configuration; defaults are used when omitted.
        blob_store: Blob store override; built from ``config.blob_store``
            when omitted.
        role_store: Role store override; built from ``config.role_store``
            when omitted.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.FILE_SERVER
    CONFIG_CLASS: ClassVar[type[FileServerConfig]] = FileServerConfig

    def __init__(
        self,
        config: FileServerConfig | None = None,
        *,
        blob_store: BlobStore | None = None,
        role_store: RoleStore | None = None,
    ) -> None:
        super().__init__(config)
        self._blobs: BlobStore = (
            blob_store if blob_store is not None else create_blob_store(self._config.blob_store)
        )
        self._roles: RoleStore = (
            role_store if role_store is not None else create_role_store(self._config.role_store)
        )
        self._keys = self._config.keys.keys
        self._pubkey = self._config.keys.public_key
        self._server_task: asyncio.Task[None] | None = None
        self._stats: dict[str, int] = dict.fromkeys(
            (
                "requests_total",
                "requests_failed",
                "uploads",
                "deletes",
                "provenance_written",
                "provenance_failed",
            ),
            0,
        )

    @property
    def blob_store(self) -> BlobStore:
        return self._blobs

    @property
    def role_store(self) -> RoleStore:
        return self._roles

    @property
    def public_key(self) -> str:
        """Hex public key signing the provenance events."""
        return self._pubkey

    async def __aenter__(self) -> FileServer:
        await super().__aenter__()

        if isinstance(self._roles, PostgresRoleStore):
            await self._roles.pool.connect()

        app = self._build_app()
        self._server_task = asyncio.create_task(self._run_server(app))
        self._logger.info(
            "http_server_started",
            host=self._config.host,
            port=self._config.port,
            pubkey=self._pubkey,
        )
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        if self._server_task is not None:
            self._server_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._server_task
            self._server_task = None
        self._logger.info("http_server_stopped")

        if isinstance(self._roles, PostgresRoleStore):
            await self._roles.pool.close()
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    async def run(self) -> None:
        """Log request stats and update Prometheus counters."""
        if self._server_task is not None and self._server_task.done():
            exc = self._server_task.exception() if not self._server_task.cancelled() else None
            self._logger.error("http_server_crashed", error=str(exc) if exc else "cancelled")
            raise RuntimeError("HTTP server task has stopped unexpectedly") from exc

        # Snapshot and reset per-cycle counters
        stats = dict(self._stats)
        for name in self._stats:
            self._stats[name] = 0

        self._logger.info("cycle_stats", **stats)
        for name, value in stats.items():
            self.inc_counter(name, value)

    # -------------------------------------------------------------------------
    # Request helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _content_key(file_hash: str, error: type[RequestError]) -> str:
        if not HEX_KEY_PATTERN.fullmatch(file_hash):
            raise error("invalid file hash")
        return file_hash.lower()

    def _request_url(self, request: Request) -> str:
        """Return the URL a client must have signed for *request*."""
        if self._config.public_url is None:
            return str(request.url)
        url = f"{self._config.public_url}{request.url.path}"
        return f"{url}?{request.url.query}" if request.url.query else url

    def _public_base(self, request: Request) -> str:
        return self._config.public_url or f"{request.url.scheme}://{request.url.netloc}"

    def _authenticate(self, request: Request, body: bytes) -> AuthEvent:
        return authenticate(
            request.headers.get("authorization"),
            method=request.method,
            url=self._request_url(request),
            body=body,
            window=self._config.auth_window,
            require_payload=self._config.require_payload_tag,
        )

    def _accepted_delegation(self, request: Request) -> DelegationTag | None:
        """Return the upload's delegation if it grants the service key kind 1063 now."""
        delegation = parse_delegation_header(request.headers.get(DELEGATION_HEADER))
        if delegation is None:
            return None
        reason = validate_delegation(
            delegation,
            delegatee=self._pubkey,
            kind=EventKind.FILE_METADATA,
            created_at=int(time.time()),
        )
        if reason is not None:
            self._logger.warning(
                "delegation_dropped", delegator=delegation.delegator, reason=reason
            )
            return None
        return delegation

    def _provenance_done(self, ok: bool) -> None:  # noqa: FBT001
        self._stats["provenance_written" if ok else "provenance_failed"] += 1

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    def _build_app(self) -> FastAPI:
        """Construct the FastAPI application."""
        app = FastAPI(title="Banbooru", docs_url=None, redoc_url=None, openapi_url=None)

        # Request logging middleware
        @app.middleware("http")
        async def log_requests(request: Request, call_next: Any) -> Response:
            start = time.monotonic()
            try:
                response: Response = await call_next(request)
            except Exception as exc:  # HTTP request error boundary
                self._logger.error(
                    "unhandled_error",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    method=request.method,
                    path=request.url.path,
                )
                response = PlainTextResponse(_SERVER_ERROR, status_code=500)
            duration_ms = (time.monotonic() - start) * 1000
            self._stats["requests_total"] += 1
            if response.status_code >= _HTTP_ERROR_THRESHOLD:
                self._stats["requests_failed"] += 1
                self._logger.warning(
                    "request_failed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round(duration_ms, 1),
                )
            else:
                self._logger.info(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round(duration_ms, 1),
                )
            return response

        @app.exception_handler(RequestError)
        async def handle_request_error(request: Request, exc: RequestError) -> Response:
            self._logger.debug(
                "request_rejected",
                path=request.url.path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return PlainTextResponse(exc.response_text(), status_code=exc.status_code)

        @app.exception_handler(StorageError)
        async def handle_storage_error(request: Request, exc: StorageError) -> Response:
            self._logger.error(
                "storage_error",
                method=request.method,
                path=request.url.path,
                error=str(exc),
            )
            return PlainTextResponse(_SERVER_ERROR, status_code=500)

        @app.get("/health")
        async def health() -> dict[str, str]:
            return {"status": "ok"}

        @app.head("/file/{file_hash}")
        async def head_file(file_hash: str) -> Response:
            key = self._content_key(file_hash, NotFoundError)
            info = await self._blobs.head(key)
            if info is None:
                raise NotFoundError()
            headers = info.http_headers()
            headers["content-length"] = str(info.size)
            return Response(status_code=200, headers=headers)

        @app.get("/file/{file_hash}")
        async def get_file(file_hash: str) -> Response:
            key = self._content_key(file_hash, NotFoundError)
            item = await self._blobs.get(key)
            if item is None:
                raise NotFoundError()
            return Response(content=item.body, status_code=200, headers=item.info.http_headers())

        @app.put("/file/{file_hash}", status_code=204)
        async def put_file(
            file_hash: str, request: Request, background_tasks: BackgroundTasks
        ) -> Response:
            key = self._content_key(file_hash, ValidationError)
            body = await request.body()

            auth = self._authenticate(request, body)
            role = await resolve_role(self._roles, auth.pubkey)
            caller = enforce(authorize_write(auth, role))

            if not body:
                raise ValidationError("missing body")
            delegation = self._accepted_delegation(request)

            if await self._blobs.head(key) is not None:
                raise ConflictError(f"object {key} already exists")

            info = await self._blobs.put(
                key,
                body,
                PutOptions(
                    sha256=key,
                    content_type=request.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
                    cache_control=self._config.cache_control,
                    only_if_absent=True,
                ),
            )
            self._stats["uploads"] += 1
            self._logger.info(
                "file_stored", key=key, size=info.size, pubkey=caller.pubkey, role=caller.role
            )

            job = ProvenanceJob(
                self._blobs,
                self._keys,
                info,
                file_url(self._public_base(request), key),
                delegation=delegation,
                on_done=self._provenance_done,
            )
            background_tasks.add_task(job.run)
            return Response(status_code=204)

        @app.delete("/file/{file_hash}", status_code=204)
        async def delete_file(file_hash: str, request: Request) -> Response:
            key = self._content_key(file_hash, ValidationError)
            body = await request.body()

            auth = self._authenticate(request, body)
            role = await resolve_role(self._roles, auth.pubkey)

            if await self._blobs.head(key) is None:
                raise NotFoundError()
            metadata = await load_provenance(self._blobs, key)
            decision = authorize_delete(auth, role, metadata)
            caller = enforce(decision)

            results = await asyncio.gather(
                self._blobs.delete(key),
                self._blobs.delete(metadata_key(key)),
                return_exceptions=True,
            )
            failures = [r for r in results if isinstance(r, BaseException)]
            if failures:
                raise StorageError(
                    f"partial delete of {key}: " + "; ".join(str(f) for f in failures)
                )

            self._stats["deletes"] += 1
            self._logger.info(
                "file_deleted", key=key, pubkey=caller.pubkey, reason=decision.reason
            )
            return Response(status_code=204)

        return app

    async def _run_server(self, app: FastAPI) -> None:
        """Run uvicorn as an asyncio server."""
        config = uvicorn.Config(
            app,
            host=self._config.host,
            port=self._config.port,
            log_level="warning",
            access_log=False,
        )
        server = uvicorn.Server(config)
        await server.serve()
