"""Task collaborators: registry, in-process provider, RPC client and peer server."""

from runorch.tasks.http import HTTPTaskClient
from runorch.tasks.peer import PeerServer, create_peer_app
from runorch.tasks.provider import InProcessTaskProvider, TaskInvocation, TaskProvider
from runorch.tasks.registry import Task, TaskContext, TaskRegistry, default_registry, task

__all__ = [
    "HTTPTaskClient",
    "InProcessTaskProvider",
    "PeerServer",
    "Task",
    "TaskContext",
    "TaskInvocation",
    "TaskProvider",
    "TaskRegistry",
    "create_peer_app",
    "default_registry",
    "task",
]
