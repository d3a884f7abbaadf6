"""HTTP API for the orchestrator."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from runorch.api.auth import APIKeyAuthProvider, AuthProvider
from runorch.config.models import OrchestratorSettings
from runorch.errors import (
    ConfigurationError,
    InvalidRunTransitionError,
    OrchestratorError,
    PlanningError,
    RunAlreadyExistsError,
    RunFailedError,
    RunNotFoundError,
    RunRequestError,
    RunStillRunningError,
)
from runorch.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[JSONResponse]]

_STATUS_BY_ERROR: tuple[tuple[type[OrchestratorError], int], ...] = (
    (RunRequestError, 400),
    (PlanningError, 400),
    (ConfigurationError, 400),
    (RunNotFoundError, 404),
    (RunAlreadyExistsError, 409),
    (RunStillRunningError, 409),
    (RunFailedError, 409),
    (InvalidRunTransitionError, 409),
)


def error_response(code: str, message: str, status_code: int, details: dict[str, Any] | None = None) -> JSONResponse:
    body: dict[str, Any] = {"error": code, "message": message}
    if details:
        body["details"] = details
    return JSONResponse(body, status_code=status_code)


def _status_for(exc: OrchestratorError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


class OrchestratorAPIServer:
    """Starlette app exposing submit, status and result over HTTP."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        *,
        host: str = "0.0.0.0",
        port: int = 8080,
        prefix: str = "",
        auth_provider: AuthProvider | None = None,
        cors_origins: list[str] | None = None,
        manage_lifecycle: bool = True,
    ) -> None:
        self._orchestrator = orchestrator
        self._host = host
        self._port = port
        self._prefix = prefix.rstrip("/")
        self._auth_provider = auth_provider
        self._manage_lifecycle = manage_lifecycle
        self._server: Any | None = None
        self._server_task: asyncio.Task[None] | None = None

        base = f"{self._prefix}/orchestrator"
        routes = [
            Route("/health", endpoint=self._health, methods=["GET"]),
            Route(base, endpoint=self._guard(self._submit), methods=["POST"]),
            Route(f"{base}/regions", endpoint=self._guard(self._regions), methods=["GET"]),
            Route(base + "/{run_id}/status", endpoint=self._guard(self._status), methods=["GET"]),
            Route(base + "/{run_id}", endpoint=self._guard(self._result), methods=["GET"]),
        ]
        self._app = Starlette(routes=routes, lifespan=self._lifespan)
        origins = cors_origins if cors_origins is not None else ["*"]
        self._app.add_middleware(CORSMiddleware, allow_origins=origins, allow_methods=["*"], allow_headers=["*"])

    @classmethod
    def from_settings(cls, orchestrator: Orchestrator, settings: OrchestratorSettings) -> OrchestratorAPIServer:
        return cls(
            orchestrator,
            host=settings.api.host,
            port=settings.api.port,
            prefix=settings.api.prefix,
            auth_provider=APIKeyAuthProvider.from_keys(settings.api.api_keys),
            cors_origins=settings.api.cors_origins,
        )

    @property
    def app(self) -> Starlette:
        return self._app

    @contextlib.asynccontextmanager
    async def _lifespan(self, _app: Starlette) -> AsyncIterator[None]:
        if self._manage_lifecycle:
            await self._orchestrator.start()
        try:
            yield
        finally:
            if self._manage_lifecycle:
                await self._orchestrator.close()

    async def start(self) -> None:
        if self._server_task is not None:
            return
        import uvicorn

        config = uvicorn.Config(self._app, host=self._host, port=self._port, log_level="warning")
        self._server = uvicorn.Server(config=config)
        self._server_task = asyncio.create_task(self._server.serve())

    async def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._server_task is not None:
            await self._server_task
            self._server_task = None
            self._server = None

    def _guard(self, handler: Endpoint) -> Endpoint:
        """Wrap ``handler`` with authentication and error-envelope mapping."""

        async def endpoint(request: Request) -> JSONResponse:
            if self._auth_provider is not None:
                result = await self._auth_provider.authenticate(request)
                if not result.ok:
                    return error_response("unauthorized", result.reason or "auth_failed", 401)
            try:
                return await handler(request)
            except OrchestratorError as exc:
                status_code = _status_for(exc)
                if status_code >= 500:
                    logger.exception("api_error path=%s", request.url.path)
                return error_response(exc.code, exc.message, status_code, exc.details)
            except Exception:
                logger.exception("api_unhandled_error path=%s", request.url.path)
                return error_response("internal", "Internal server error", 500)

        return endpoint

    async def _health(self, request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "inFlight": len(self._orchestrator.in_flight())})

    async def _submit(self, request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError:
            return error_response("invalid_request", "Request body must be valid JSON", 400)
        if not isinstance(body, dict):
            return error_response("invalid_request", "Request body must be a JSON object", 400)
        response = await self._orchestrator.submit(body)
        location = f"{self._prefix}/orchestrator/{response.run_id}/status"
        return JSONResponse(response.to_wire(), status_code=202, headers={"Location": location})

    async def _regions(self, request: Request) -> JSONResponse:
        return JSONResponse({"regions": self._orchestrator.regions()})

    async def _status(self, request: Request) -> JSONResponse:
        status = await self._orchestrator.get_status(str(request.path_params["run_id"]))
        return JSONResponse(status.to_wire())

    async def _result(self, request: Request) -> JSONResponse:
        summary = await self._orchestrator.get_results(str(request.path_params["run_id"]))
        return JSONResponse(summary.to_wire())


def create_app(settings: OrchestratorSettings, orchestrator: Orchestrator | None = None) -> Starlette:
    """Build the orchestrator ASGI app from settings."""
    service = orchestrator if orchestrator is not None else Orchestrator.from_settings(settings)
    return OrchestratorAPIServer.from_settings(service, settings).app
