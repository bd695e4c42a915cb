"""
Pull domain module
"""
from .service import PullService, CANCELLED_BY_USER

__all__ = [
    "PullService",
    "CANCELLED_BY_USER",
]
