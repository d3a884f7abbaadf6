"""runorch: run orchestration engine."""

from runorch.errors import OrchestratorError
from runorch.models import RunRequest, RunStatus, RunSummary, SubmitResponse
from runorch.orchestrator import Orchestrator
from runorch.tasks.registry import TaskContext, TaskRegistry, default_registry, task

__version__ = "0.1.0"

__all__ = [
    "Orchestrator",
    "OrchestratorError",
    "RunRequest",
    "RunStatus",
    "RunSummary",
    "SubmitResponse",
    "TaskContext",
    "TaskRegistry",
    "__version__",
    "default_registry",
    "task",
]
