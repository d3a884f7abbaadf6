"""HTTP client for the peer task execution contract."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from runorch.errors import RemoteExecutionError
from runorch.models import TaskExecutionRequest, TaskExecutionResponse

logger = logging.getLogger(__name__)

DEFAULT_RPC_GRACE_MS = 5_000
TIMEOUT_STATUS_CODES = {408, 504}


class HTTPTaskClient:
    """POST task execution requests to a peer's ``/execute`` endpoint.

    Requests are sent once; there is no retry because a peer may already have
    executed the runners when a response is lost.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
        grace_ms: int = DEFAULT_RPC_GRACE_MS,
        execute_path: str = "/execute",
    ) -> None:
        self._transport = transport
        self._headers = dict(headers or {})
        self._grace_ms = max(int(grace_ms), 0)
        self._execute_path = execute_path

    async def execute(
        self,
        endpoint: str,
        request: TaskExecutionRequest,
        *,
        timeout_ms: int | None = None,
    ) -> TaskExecutionResponse:
        """Send ``request`` to ``endpoint`` and return the decoded response.

        Raises:
            RemoteExecutionError: transport failure, deadline expiry, non-2xx
                reply or a malformed response body. The underlying httpx error
                is chained as ``__cause__``.
        """
        url = endpoint.rstrip("/") + self._execute_path
        deadline_ms = (timeout_ms or request.timeout or 0) + self._grace_ms
        timeout_seconds = max(deadline_ms, 1) / 1000.0 if deadline_ms else None

        try:
            async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, json=request.to_wire(), headers=self._headers)
        except httpx.TimeoutException as exc:
            logger.warning("rpc_timeout url=%s run_id=%s timeout_ms=%s", url, request.run_id, deadline_ms)
            raise RemoteExecutionError(
                f"Request to {url} timed out after {deadline_ms}ms",
                remote_code="TIMEOUT",
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("rpc_transport_error url=%s run_id=%s error=%s", url, request.run_id, exc)
            raise RemoteExecutionError(f"Request to {url} failed: {exc}") from exc

        payload = self._safe_json(response)
        if response.status_code >= 400:
            raise self._error_from_response(url, response.status_code, payload)

        try:
            return TaskExecutionResponse.model_validate(payload)
        except ValidationError as exc:
            raise RemoteExecutionError(
                f"Invalid response from {url}: {exc.errors()[0]['msg']}",
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _error_from_response(url: str, status_code: int, payload: Any) -> RemoteExecutionError:
        body = payload if isinstance(payload, dict) else {}
        remote_code = body.get("code") if isinstance(body.get("code"), str) else None
        if remote_code is None and status_code in TIMEOUT_STATUS_CODES:
            remote_code = "TIMEOUT"
        message = body.get("message") or body.get("text") or "no message"
        data = body.get("data") if isinstance(body.get("data"), dict) else None
        logger.warning("rpc_error url=%s status=%d code=%s", url, status_code, remote_code)
        return RemoteExecutionError(
            f"Remote runner at {url} returned HTTP {status_code} ({remote_code or 'ERROR'}): {message}",
            status_code=status_code,
            remote_code=remote_code,
            details=data,
        )

    @staticmethod
    def _safe_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {"text": response.text}
