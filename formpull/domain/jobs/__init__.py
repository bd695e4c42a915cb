"""
Jobs domain module
"""
from .models import BatchState, JobContext, UnitOfWork, UnitState
from .orchestrator import BatchHandle, JobOrchestrator

__all__ = [
    "BatchState",
    "JobContext",
    "UnitOfWork",
    "UnitState",
    "BatchHandle",
    "JobOrchestrator",
]
