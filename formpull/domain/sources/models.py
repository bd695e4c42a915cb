"""
Source domain models
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from ...core.constants import DEFAULT_SSH_PORT, SOURCE_PREF_PREFIX
from ...core.exceptions import SourceValidationError
from ...core.interfaces import PreferenceStore

SOURCE_FORM_PREF_PREFIX = f"{SOURCE_PREF_PREFIX}form."


class SourceKind(str, Enum):
    """Kinds of sources forms can be pulled from"""
    COLLECT_DIRECTORY = "collect_directory"
    REMOTE_DIRECTORY = "remote_directory"
    AGGREGATE_SERVER = "aggregate_server"
    CENTRAL_SERVER = "central_server"


@dataclass(frozen=True)
class DirectoryPayload:
    """A Collect storage directory on this machine"""
    path: Path

    def to_prefs(self, store_passwords: bool) -> Dict[str, str]:
        return {"path": str(self.path)}

    @classmethod
    def from_prefs(cls, values: Dict[str, str]) -> "DirectoryPayload":
        return cls(path=Path(values["path"]))

    def describe(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class RemoteDirectoryPayload:
    """A Collect storage directory on an SSH host"""
    host: str
    path: str
    user: Optional[str] = None
    port: int = DEFAULT_SSH_PORT
    key_file: Optional[str] = None
    password: Optional[str] = None

    def to_prefs(self, store_passwords: bool) -> Dict[str, str]:
        prefs = {"host": self.host, "path": self.path, "port": str(self.port)}
        if self.user:
            prefs["user"] = self.user
        if self.key_file:
            prefs["key_file"] = self.key_file
        if store_passwords and self.password:
            prefs["password"] = self.password
        return prefs

    @classmethod
    def from_prefs(cls, values: Dict[str, str]) -> "RemoteDirectoryPayload":
        return cls(
            host=values["host"],
            path=values["path"],
            user=values.get("user"),
            port=int(values.get("port", DEFAULT_SSH_PORT)),
            key_file=values.get("key_file"),
            password=values.get("password"),
        )

    def describe(self) -> str:
        user = f"{self.user}@" if self.user else ""
        return f"{user}{self.host}:{self.path}"


@dataclass(frozen=True)
class ServerPayload:
    """An Aggregate server"""
    url: str
    username: Optional[str] = None
    password: Optional[str] = None

    def to_prefs(self, store_passwords: bool) -> Dict[str, str]:
        prefs = {"url": self.url}
        if self.username:
            prefs["username"] = self.username
        if store_passwords and self.password:
            prefs["password"] = self.password
        return prefs

    @classmethod
    def from_prefs(cls, values: Dict[str, str]) -> "ServerPayload":
        return cls(
            url=values["url"],
            username=values.get("username"),
            password=values.get("password"),
        )

    def describe(self) -> str:
        return self.url


@dataclass(frozen=True)
class CentralPayload:
    """A project on a Central server"""
    url: str
    project_id: int
    username: Optional[str] = None
    password: Optional[str] = None

    def to_prefs(self, store_passwords: bool) -> Dict[str, str]:
        prefs = {"url": self.url, "project_id": str(self.project_id)}
        if self.username:
            prefs["username"] = self.username
        if store_passwords and self.password:
            prefs["password"] = self.password
        return prefs

    @classmethod
    def from_prefs(cls, values: Dict[str, str]) -> "CentralPayload":
        return cls(
            url=values["url"],
            project_id=int(values["project_id"]),
            username=values.get("username"),
            password=values.get("password"),
        )

    def describe(self) -> str:
        return f"{self.url} (project {self.project_id})"


Payload = Union[DirectoryPayload, RemoteDirectoryPayload, ServerPayload, CentralPayload]

_PAYLOAD_TYPES = {
    SourceKind.COLLECT_DIRECTORY: DirectoryPayload,
    SourceKind.REMOTE_DIRECTORY: RemoteDirectoryPayload,
    SourceKind.AGGREGATE_SERVER: ServerPayload,
    SourceKind.CENTRAL_SERVER: CentralPayload,
}


def _prefix(form_id: Optional[str]) -> str:
    if form_id is None:
        return SOURCE_PREF_PREFIX
    return f"{SOURCE_FORM_PREF_PREFIX}{form_id}."


@dataclass(frozen=True)
class Source:
    """A source of forms: its kind plus the payload that kind carries"""
    kind: SourceKind
    payload: Payload

    def __post_init__(self):
        expected = _PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise SourceValidationError(
                f"{self.kind.value} source needs a {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )

    @classmethod
    def collect_directory(cls, path: Union[str, Path]) -> "Source":
        return cls(SourceKind.COLLECT_DIRECTORY, DirectoryPayload(Path(path).expanduser()))

    @classmethod
    def remote_directory(cls, host: str, path: str, **kwargs) -> "Source":
        return cls(SourceKind.REMOTE_DIRECTORY, RemoteDirectoryPayload(host, path, **kwargs))

    @classmethod
    def aggregate(cls, url: str, username: Optional[str] = None, password: Optional[str] = None) -> "Source":
        return cls(SourceKind.AGGREGATE_SERVER, ServerPayload(url, username, password))

    @classmethod
    def central(cls, url: str, project_id: int, username: Optional[str] = None, password: Optional[str] = None) -> "Source":
        return cls(SourceKind.CENTRAL_SERVER, CentralPayload(url, project_id, username, password))

    @property
    def is_remote(self) -> bool:
        return self.kind is not SourceKind.COLLECT_DIRECTORY

    def describe(self) -> str:
        return self.payload.describe()

    # ------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------

    def store_in_prefs(
        self,
        preferences: PreferenceStore,
        store_passwords: bool,
        form_id: Optional[str] = None,
    ) -> None:
        """
        Remember this source, either as the session's source or as the
        source a given form was pulled from.

        Passwords are only written when store_passwords is true.
        """
        prefix = _prefix(form_id)
        clear_stored_prefs(preferences, form_id)
        values = {"kind": self.kind.value, **self.payload.to_prefs(store_passwords)}
        preferences.put_all({f"{prefix}{key}": value for key, value in values.items()})

    @classmethod
    def read_from_prefs(
        cls,
        preferences: PreferenceStore,
        form_id: Optional[str] = None,
    ) -> Optional["Source"]:
        """Restore a source stored with store_in_prefs, None if there is none"""
        prefix = _prefix(form_id)
        kind_value = preferences.get(f"{prefix}kind")
        if kind_value is None:
            return None

        values = {}
        for key in preferences.keys_with_prefix(prefix):
            field_name = key[len(prefix):]
            if "." in field_name:
                continue
            value = preferences.get(key)
            if value is not None:
                values[field_name] = value

        try:
            kind = SourceKind(kind_value)
            return cls(kind, _PAYLOAD_TYPES[kind].from_prefs(values))
        except (KeyError, ValueError):
            return None


def is_pref_key(key: str) -> bool:
    """Whether a preference key belongs to a stored source"""
    return key.startswith(SOURCE_PREF_PREFIX)


def clear_stored_prefs(preferences: PreferenceStore, form_id: Optional[str] = None) -> None:
    """Forget a stored source (the session's one when form_id is None)"""
    prefix = _prefix(form_id)
    # Dotted remainders belong to per-form sources or to forms whose id extends form_id
    keys = [key for key in preferences.keys_with_prefix(prefix) if "." not in key[len(prefix):]]
    preferences.remove_all(keys)
