"""
Connection factory implementation
"""
import socket
from typing import Dict, Any

import paramiko

from ...core.interfaces import ConnectionFactory
from ...core.client import RemoteClient
from ...core.constants import DEFAULT_SSH_PORT, DEFAULT_SSH_TIMEOUT
from ...core.exceptions import ConnectionError
from ...core.logging import get_logger

logger = get_logger(__name__)


class RemoteConnectionFactory(ConnectionFactory):
    """Opens RemoteClient connections for remote Collect directories"""

    def __init__(self, timeout: int = DEFAULT_SSH_TIMEOUT):
        self.timeout = timeout

    def create(self, params: Dict[str, Any]) -> RemoteClient:
        """
        Create and connect SSH client.

        A key file selects key authentication, with the password (if any)
        as its passphrase; otherwise the password is used to log in.

        Args:
            params: host, user, port and optionally key and password

        Returns:
            Connected RemoteClient instance

        Raises:
            ConnectionError: If the host can't be reached or refuses the login
        """
        client = RemoteClient(
            host=params["host"],
            user=params["user"],
            port=params.get("port", DEFAULT_SSH_PORT),
            auth_method="key" if params.get("key") else "password",
            password=params.get("password"),
            key_path=params.get("key"),
            timeout=params.get("timeout", self.timeout),
        )

        try:
            client.connect()
        except paramiko.AuthenticationException as e:
            client.close()
            raise ConnectionError(f"Authentication to {client.config.user}@{params['host']} failed") from e
        except (paramiko.SSHException, socket.error) as e:
            client.close()
            raise ConnectionError(f"Failed to connect to {params['host']}: {e}") from e
        except ConnectionError:
            client.close()
            raise

        logger.info("Connected to %s@%s:%s", client.config.user, client.config.host, client.config.port)
        return client
