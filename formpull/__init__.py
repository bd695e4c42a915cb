"""
Formpull - pull forms and submissions from Collect storage directories
"""
__version__ = "0.1.0"

from .core.events import EventChannel, EventKind, TransferEvent
from .core.exceptions import FormPullError
from .domain.forms import FormDescriptor, FormRecord, TransferConfiguration, TransferRegistry
from .domain.jobs import BatchHandle, JobOrchestrator, UnitOfWork
from .domain.pull import PullService
from .domain.sources import Source, SourceKind, create_adapter, parse_source

__all__ = [
    "__version__",
    "EventChannel",
    "EventKind",
    "TransferEvent",
    "FormPullError",
    "FormDescriptor",
    "FormRecord",
    "TransferConfiguration",
    "TransferRegistry",
    "BatchHandle",
    "JobOrchestrator",
    "UnitOfWork",
    "PullService",
    "Source",
    "SourceKind",
    "create_adapter",
    "parse_source",
]
