"""Exception hierarchy for the run orchestrator.

Submission-time problems (validation, planning, configuration) are raised to the
caller directly. Job-level problems never surface as exceptions; they are folded
into ``JobResult`` objects by the executors. Query errors are raised by the
status/result reads.
"""

from __future__ import annotations

from typing import Any


class OrchestratorError(Exception):
    """Base exception for orchestration failures."""

    code: str = "orchestrator_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class RunRequestError(OrchestratorError):
    """Raised when a run request fails validation."""

    code = "invalid_request"


class PlanningError(OrchestratorError):
    """Raised when a valid request cannot be fanned out into jobs."""

    code = "planning_error"

    def __init__(self, message: str, *, runner_name: str | None = None) -> None:
        self.runner_name = runner_name
        details = {"runner": runner_name} if runner_name else None
        super().__init__(message, details=details)


class ConfigurationError(OrchestratorError):
    """Raised when orchestrator configuration is invalid or missing."""

    code = "configuration_error"


class RegionNotConfiguredError(ConfigurationError):
    """Raised when a region has no peer endpoint mapped."""

    def __init__(self, region: str, available: list[str]) -> None:
        self.region = region
        self.available = sorted(available)
        listed = ", ".join(self.available) or "<none>"
        super().__init__(
            f'No runner URL found for region "{region}". Available regions: {listed}',
            details={"region": region, "available": self.available},
        )


class TaskNotFoundError(OrchestratorError):
    """Raised when one or more requested task names are not registered."""

    code = "runner_not_found"

    def __init__(self, missing: list[str], available: list[str]) -> None:
        self.missing = list(missing)
        self.available = sorted(available)
        super().__init__(
            f"Runners not found: {', '.join(self.missing)}. "
            f"Available runners: {', '.join(self.available) or '<none>'}",
            details={"missing": self.missing, "available": self.available},
        )


class RemoteExecutionError(OrchestratorError):
    """Raised by the RPC client when a peer rejects or fails an execute call."""

    code = "remote_execution_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        remote_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.remote_code = remote_code
        super().__init__(message, details=details)


class RunNotFoundError(OrchestratorError):
    """Raised when a run id is unknown to the store."""

    code = "not_found"

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run {run_id} not found")


class RunAlreadyExistsError(OrchestratorError):
    """Raised when a caller-supplied run id is already in use."""

    code = "conflict"

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run {run_id} already exists")


class RunStillRunningError(OrchestratorError):
    """Raised when results are requested before the run is terminal."""

    code = "run_running"

    def __init__(self, run_id: str, status_path: str | None = None) -> None:
        self.run_id = run_id
        path = status_path or f"/orchestrator/{run_id}/status"
        super().__init__(f"Run {run_id} is still running. Use GET {path} to check status.")


class RunFailedError(OrchestratorError):
    """Raised when results are requested for a run that failed as a whole."""

    code = "run_failed"

    def __init__(self, run_id: str, reason: str | None) -> None:
        self.run_id = run_id
        self.reason = reason or "Unknown error"
        super().__init__(f"Run {run_id} failed: {self.reason}")


class InvalidRunTransitionError(OrchestratorError):
    """Raised when a terminal run record would be written again."""

    code = "invalid_transition"

    def __init__(self, run_id: str, current: str, target: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run {run_id} cannot move from {current} to {target}")
