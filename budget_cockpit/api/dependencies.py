"""Dependency injection for FastAPI endpoints"""

from functools import lru_cache

from fastapi import Request

from budget_cockpit.worker import RiskFindingsWorker


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache
def get_risk_worker() -> RiskFindingsWorker:
    """Shared risk worker; one thread pool per process"""
    return RiskFindingsWorker()
