"""Job execution strategies."""

from runorch.executors.base import ExecutorRegistry, JobExecutor
from runorch.executors.classify import is_timeout_error
from runorch.executors.local import LocalExecutor
from runorch.executors.remote import RemoteExecutor

__all__ = ["ExecutorRegistry", "JobExecutor", "LocalExecutor", "RemoteExecutor", "is_timeout_error"]
