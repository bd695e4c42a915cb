"""
SSH client used to read Collect storage directories on remote hosts
"""
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Literal, Optional

import paramiko

from .constants import DEFAULT_SSH_PORT, DEFAULT_SSH_TIMEOUT
from .exceptions import ConnectionError
from .logging import get_logger

logger = get_logger(__name__)

# Tried in order when loading a private key file
_KEY_TYPES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)


@dataclass
class ClientConfig:
    host: str
    user: str
    port: int = DEFAULT_SSH_PORT
    auth_method: Literal["password", "key"] = "password"
    password: Optional[str] = None
    key_path: Optional[str] = None
    timeout: int = DEFAULT_SSH_TIMEOUT


class RemoteClient:
    """
    Thin wrapper around paramiko's SSHClient:
    - password or private key login (the password unlocks an encrypted key)
    - one SFTP session per caller, so pull operations can run concurrently
    - the remote home directory, resolved once over SFTP
    - usable as a context manager
    """
    def __init__(
        self,
        host: str,
        user: str,
        port: int = DEFAULT_SSH_PORT,
        auth_method: Literal["password", "key"] = "password",
        password: Optional[str] = None,
        key_path: Optional[str] = None,
        timeout: int = DEFAULT_SSH_TIMEOUT,
    ) -> None:
        self.config = ClientConfig(
            host=host,
            user=user,
            port=port,
            auth_method=auth_method,
            password=password,
            key_path=key_path,
            timeout=timeout,
        )

        self.client = paramiko.SSHClient()
        self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        self._lock = threading.Lock()
        self._sessions: List[paramiko.SFTPClient] = []
        self._home: Optional[str] = None

    def __repr__(self) -> str:
        return f"RemoteClient({self.config.user}@{self.config.host}:{self.config.port})"

    # --------------------
    # Connection management
    # --------------------
    def connect(self) -> None:
        cfg = self.config

        if cfg.auth_method == "password":
            self.client.connect(
                hostname=cfg.host,
                port=cfg.port,
                username=cfg.user,
                password=cfg.password,
                timeout=cfg.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        elif cfg.auth_method == "key":
            self.client.connect(
                hostname=cfg.host,
                port=cfg.port,
                username=cfg.user,
                pkey=self._load_private_key(cfg.key_path, cfg.password),
                timeout=cfg.timeout,
            )
        else:
            raise ValueError(f"Unsupported auth method: {cfg.auth_method}")

        logger.debug("Connected to %s", self)

    def _load_private_key(self, path: Optional[str], passphrase: Optional[str]) -> paramiko.PKey:
        if not path:
            raise ConnectionError("Key authentication needs a key file")
        key_file = Path(path).expanduser()

        for key_type in _KEY_TYPES:
            try:
                return key_type.from_private_key_file(str(key_file), password=passphrase)
            except paramiko.PasswordRequiredException as e:
                raise ConnectionError(f"Private key {key_file} is encrypted, a password is needed") from e
            except (paramiko.SSHException, ValueError):
                continue
            except OSError as e:
                raise ConnectionError(f"Cannot read private key {key_file}: {e}") from e
        raise ConnectionError(f"Unsupported private key format: {key_file}")

    # --------------------
    # SFTP
    # --------------------
    def new_sftp(self) -> paramiko.SFTPClient:
        """Independent SFTP session, closed with the client at the latest"""
        sftp = self.client.open_sftp()
        with self._lock:
            self._sessions.append(sftp)
        return sftp

    def home_dir(self) -> str:
        with self._lock:
            if self._home is not None:
                return self._home

        sftp = self.client.open_sftp()
        try:
            home = sftp.normalize(".")
        finally:
            sftp.close()

        with self._lock:
            self._home = home
        return home

    def close(self) -> None:
        with self._lock:
            sessions = list(self._sessions)
            self._sessions.clear()
        for sftp in sessions:
            try:
                sftp.close()
            except (OSError, paramiko.SSHException) as e:
                logger.debug("Ignoring error while closing SFTP session: %s", e)
        self.client.close()

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> "RemoteClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
