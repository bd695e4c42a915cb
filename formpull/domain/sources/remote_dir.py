"""
Collect storage directory on an SSH host, read over SFTP
"""
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import paramiko

from ...core.client import RemoteClient
from ...core.exceptions import ConnectionError
from ...core.interfaces import ConnectionFactory, PreferenceStore
from ...core.logging import get_logger
from ..forms.models import TransferConfiguration
from .collect import CollectLayoutAdapter
from .models import RemoteDirectoryPayload, Source, SourceKind
from .storage import SftpStorage

logger = get_logger(__name__)


class RemoteDirAdapter(CollectLayoutAdapter):
    """
    A Collect storage directory on a remote host.

    One SSH connection is shared by the adapter; every pull operation opens
    its own SFTP session on it so units can run concurrently.
    """

    def __init__(
        self,
        payload: RemoteDirectoryPayload,
        connection_factory: ConnectionFactory,
        workspace: Path,
        default_configuration: Optional[TransferConfiguration] = None,
    ):
        super().__init__(workspace, default_configuration)
        self.payload = payload
        self.connection_factory = connection_factory
        self._client: Optional[RemoteClient] = None
        self._client_lock = threading.Lock()

    def connection_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "host": self.payload.host,
            "user": self.payload.user or "root",
            "port": self.payload.port,
        }
        if self.payload.key_file:
            params["key"] = self.payload.key_file
        if self.payload.password:
            params["password"] = self.payload.password
        return params

    def client(self) -> RemoteClient:
        with self._client_lock:
            if self._client is None:
                # The factory raises ConnectionError on failure
                self._client = self.connection_factory.create(self.connection_params())
            return self._client

    def open_storage(self) -> SftpStorage:
        return SftpStorage(self.client().new_sftp())

    def resolve(self, path: str) -> str:
        """Expand ~ and relative paths against the remote home directory"""
        if path.startswith("~"):
            return self.client().home_dir() + path[1:]
        if not path.startswith("/"):
            return f"{self.client().home_dir()}/{path}"
        return path

    def validate(self, location: str) -> bool:
        try:
            location = self.resolve(location)
            storage = self.open_storage()
        except (ConnectionError, OSError, paramiko.SSHException) as e:
            logger.warning("%s", e)
            return False
        try:
            return self.has_collect_layout(storage, location)
        finally:
            storage.close()

    def open(self, location: str) -> "RemoteDirAdapter":
        super().open(self.resolve(location))
        return self

    def describe(self) -> str:
        return self.payload.describe()

    def can_be_reloaded(self) -> bool:
        return True

    def store_prefs(self, preferences: PreferenceStore, store_passwords: bool) -> None:
        Source(SourceKind.REMOTE_DIRECTORY, self.payload).store_in_prefs(preferences, store_passwords)

    def close(self) -> None:
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None
