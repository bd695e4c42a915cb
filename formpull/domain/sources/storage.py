"""
Storage backends a Collect-style source is read through
"""
import os
import posixpath
import shutil
import stat
from pathlib import Path
from typing import List

import paramiko


class LocalStorage:
    """Local filesystem"""

    def join(self, *parts: str) -> str:
        return os.path.join(*parts)

    def basename(self, path: str) -> str:
        return os.path.basename(path)

    def listdir(self, path: str) -> List[str]:
        return sorted(os.listdir(path))

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def read_bytes(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def mtime(self, path: str) -> float:
        return os.stat(path).st_mtime

    def download(self, path: str, local_path: Path) -> None:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, local_path)

    def close(self) -> None:
        pass


class SftpStorage:
    """Remote filesystem over an SFTP session"""

    def __init__(self, sftp: paramiko.SFTPClient, owns_session: bool = True):
        self.sftp = sftp
        self._owns_session = owns_session

    def join(self, *parts: str) -> str:
        return posixpath.join(*parts)

    def basename(self, path: str) -> str:
        return posixpath.basename(path)

    def listdir(self, path: str) -> List[str]:
        return sorted(self.sftp.listdir(path))

    def is_dir(self, path: str) -> bool:
        try:
            return stat.S_ISDIR(self.sftp.stat(path).st_mode)
        except IOError:
            return False

    def is_file(self, path: str) -> bool:
        try:
            return stat.S_ISREG(self.sftp.stat(path).st_mode)
        except IOError:
            return False

    def read_bytes(self, path: str) -> bytes:
        with self.sftp.open(path, 'rb') as remote_file:
            return remote_file.read()

    def mtime(self, path: str) -> float:
        return float(self.sftp.stat(path).st_mtime or 0)

    def download(self, path: str, local_path: Path) -> None:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = local_path.with_suffix(local_path.suffix + '.part')
        self.sftp.get(path, str(temp_file))
        temp_file.replace(local_path)

    def close(self) -> None:
        if self._owns_session:
            self.sftp.close()
