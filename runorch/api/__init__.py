"""Orchestrator HTTP API."""

from runorch.api.auth import APIKeyAuthProvider, AuthProvider, AuthResult
from runorch.api.server import OrchestratorAPIServer, create_app

__all__ = ["APIKeyAuthProvider", "AuthProvider", "AuthResult", "OrchestratorAPIServer", "create_app"]
