"""
Core infrastructure layer
"""
from .client import RemoteClient, ClientConfig
from .constants import *
from .exceptions import *
from .events import EventChannel, EventKind, TransferEvent, Subscription
from .logging import setup_logging, get_logger, get_stdout_console, get_stderr_console
from .interfaces import PreferenceStore, SourceAdapter, ConnectionFactory
from .utils import load_ssh_config, format_timestamp, parse_timestamp

__all__ = [
    "RemoteClient",
    "ClientConfig",
    "EventChannel",
    "EventKind",
    "TransferEvent",
    "Subscription",
    "setup_logging",
    "get_logger",
    "get_stdout_console",
    "get_stderr_console",
    "PreferenceStore",
    "SourceAdapter",
    "ConnectionFactory",
    "load_ssh_config",
    "format_timestamp",
    "parse_timestamp",
]
