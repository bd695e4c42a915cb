"""
Sources domain module
"""
from .models import (
    SourceKind,
    Source,
    DirectoryPayload,
    RemoteDirectoryPayload,
    ServerPayload,
    CentralPayload,
    is_pref_key,
    clear_stored_prefs,
)
from .collect import CollectLayoutAdapter
from .collect_dir import CollectDirAdapter
from .remote_dir import RemoteDirAdapter
from .factory import create_adapter, register_adapter
from .parser import parse_source

__all__ = [
    "SourceKind",
    "Source",
    "DirectoryPayload",
    "RemoteDirectoryPayload",
    "ServerPayload",
    "CentralPayload",
    "is_pref_key",
    "clear_stored_prefs",
    "CollectLayoutAdapter",
    "CollectDirAdapter",
    "RemoteDirAdapter",
    "create_adapter",
    "register_adapter",
    "parse_source",
]
