"""
Request-scoped access to the collaborators held on app.state.
"""
from fastapi import Request

from database.repository import RelationalStore
from verification.orchestrator import VerificationOrchestrator


def get_orchestrator(request: Request) -> VerificationOrchestrator:
    return request.app.state.orchestrator


def get_store(request: Request) -> RelationalStore:
    return request.app.state.store
