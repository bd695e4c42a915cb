"""
Tests for SSH connections.
"""

from unittest.mock import Mock, patch

import paramiko
import pytest

from formpull.adapters.cli.connection import RemoteConnectionFactory
from formpull.core.client import RemoteClient
from formpull.core.exceptions import ConnectionError


class TestRemoteConnectionFactory:
    """Test how connection failures surface."""

    def test_password_login(self):
        with patch.object(RemoteClient, "connect") as connect:
            client = RemoteConnectionFactory().create(
                {"host": "tablet.local", "user": "odk", "password": "secret"}
            )
        connect.assert_called_once()
        assert client.config.auth_method == "password"
        assert client.config.port == 22

    def test_key_file_selects_key_login(self):
        with patch.object(RemoteClient, "connect"):
            client = RemoteConnectionFactory().create(
                {"host": "tablet.local", "user": "odk", "port": 2222, "key": "~/.ssh/id_ed25519"}
            )
        assert client.config.auth_method == "key"
        assert client.config.key_path == "~/.ssh/id_ed25519"

    @pytest.mark.parametrize("error", [
        paramiko.AuthenticationException("denied"),
        paramiko.SSHException("banner"),
        OSError("no route to host"),
    ])
    def test_failures_become_connection_errors(self, error):
        with patch.object(RemoteClient, "connect", side_effect=error), \
                patch.object(RemoteClient, "close") as close:
            with pytest.raises(ConnectionError):
                RemoteConnectionFactory().create({"host": "tablet.local", "user": "odk"})
        close.assert_called_once()


class TestRemoteClient:
    """Test session bookkeeping without a network."""

    def test_home_dir_is_resolved_once(self):
        client = RemoteClient("tablet.local", "odk")
        sftp = Mock()
        sftp.normalize.return_value = "/home/odk"
        client.client = Mock()
        client.client.open_sftp.return_value = sftp

        assert client.home_dir() == "/home/odk"
        assert client.home_dir() == "/home/odk"
        client.client.open_sftp.assert_called_once()
        sftp.close.assert_called_once()

    def test_close_closes_open_sessions(self):
        client = RemoteClient("tablet.local", "odk")
        client.client = Mock()
        first, second = Mock(), Mock()
        client.client.open_sftp.side_effect = [first, second]

        client.new_sftp()
        client.new_sftp()
        client.close()

        first.close.assert_called_once()
        second.close.assert_called_once()
        client.client.close.assert_called_once()

    def test_missing_key_file(self, tmp_path):
        client = RemoteClient(
            "tablet.local", "odk", auth_method="key", key_path=str(tmp_path / "missing"),
        )
        with pytest.raises(ConnectionError):
            client.connect()
