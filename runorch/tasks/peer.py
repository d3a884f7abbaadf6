"""Peer server exposing a task registry over the execute contract."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from runorch.errors import TaskNotFoundError
from runorch.models import TaskExecutionRequest, TaskExecutionResponse
from runorch.tasks.provider import InProcessTaskProvider, TaskInvocation, TaskProvider
from runorch.tasks.registry import TaskRegistry, default_registry

logger = logging.getLogger(__name__)


def _error(code: str, message: str, status_code: int, data: dict[str, Any] | None = None) -> JSONResponse:
    body: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        body["data"] = data
    return JSONResponse(body, status_code=status_code)


class PeerServer:
    """Starlette app serving ``POST /execute`` and ``GET /info`` for one region."""

    def __init__(
        self,
        *,
        registry: TaskRegistry | None = None,
        provider: TaskProvider | None = None,
        region: str | None = None,
    ) -> None:
        self._registry = registry if registry is not None else default_registry
        self._provider = provider if provider is not None else InProcessTaskProvider()
        self._region = region
        self._app = Starlette(
            routes=[
                Route("/execute", endpoint=self._execute, methods=["POST"]),
                Route("/info", endpoint=self._info, methods=["GET"]),
            ]
        )

    @property
    def app(self) -> Starlette:
        return self._app

    async def _execute(self, request: Request) -> JSONResponse:
        try:
            raw = await request.json()
        except ValueError:
            return _error("BAD_REQUEST", "Request body must be valid JSON", 400)
        try:
            payload = TaskExecutionRequest.model_validate(raw)
        except ValidationError as exc:
            return _error(
                "BAD_REQUEST",
                "Invalid execute request",
                400,
                {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            )

        try:
            tasks = self._registry.resolve(call.name for call in payload.runners)
        except TaskNotFoundError as exc:
            logger.warning("peer_runner_not_found run_id=%s missing=%s", payload.run_id, ",".join(exc.missing))
            return _error(
                "RUNNER_NOT_FOUND",
                exc.message,
                404,
                {"missingRunners": exc.missing, "availableRunners": exc.available},
            )

        invocations = [
            TaskInvocation(task=task, input=self._with_url(call.input, payload.url))
            for task, call in zip(tasks, payload.runners)
        ]
        region = payload.region or self._region
        try:
            results = await self._provider.execute(
                invocations,
                url=payload.url,
                region=region,
                run_id=payload.run_id,
                timeout_ms=payload.timeout,
            )
        except Exception as exc:
            logger.exception("peer_execution_failed run_id=%s", payload.run_id)
            return _error("EXECUTION_FAILED", str(exc) or type(exc).__name__, 500, {"details": repr(exc)})

        logger.info("peer_executed run_id=%s region=%s runners=%d", payload.run_id, region, len(results))
        response = TaskExecutionResponse(results=results, region=region, run_id=payload.run_id)
        return JSONResponse(response.to_wire())

    async def _info(self, request: Request) -> JSONResponse:
        return JSONResponse({"runners": self._registry.names(), "region": self._region})

    @staticmethod
    def _with_url(task_input: dict[str, Any], url: str | None) -> dict[str, Any]:
        if url and "url" not in task_input:
            return {**task_input, "url": url}
        return dict(task_input)


def create_peer_app(
    registry: TaskRegistry | None = None,
    *,
    provider: TaskProvider | None = None,
    region: str | None = None,
) -> Starlette:
    """Build the peer Starlette app for ``registry``."""
    return PeerServer(registry=registry, provider=provider, region=region).app
