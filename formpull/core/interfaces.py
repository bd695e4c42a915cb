"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Iterable, List, Optional, Mapping, TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.forms.models import FormDescriptor, FormRecord
    from ..domain.jobs.models import UnitOfWork


class PreferenceStore(ABC):
    """Key/value preference storage interface. Keys and values are strings."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get the value stored under key, None if absent"""
        pass

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        """Store a value under key"""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove key if present"""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """List every stored key"""
        pass

    def put_all(self, values: Mapping[str, str]) -> None:
        """Store every entry of a mapping"""
        for key, value in values.items():
            self.put(key, value)

    def remove_all(self, keys: Iterable[str]) -> None:
        """Remove every given key"""
        for key in list(keys):
            self.remove(key)

    def keys_with_prefix(self, prefix: str) -> List[str]:
        """List keys starting with prefix"""
        return [key for key in self.keys() if key.startswith(prefix)]


class SourceAdapter(ABC):
    """
    A source of forms.

    The registry and the orchestrator only talk to sources through this
    contract; a new kind of source is added by implementing it.
    """

    @abstractmethod
    def validate(self, location: Any) -> bool:
        """Check whether a candidate location is usable by this adapter"""
        pass

    @abstractmethod
    def enumerate(self) -> List["FormDescriptor"]:
        """List the forms available at the source, in a stable order"""
        pass

    @abstractmethod
    def build_pull_operation(self, record: "FormRecord", start_from_last: bool = False) -> "UnitOfWork":
        """
        Build the unit of work that pulls one form.

        start_from_last asks the operation to skip what was already pulled
        before the form's last successful transfer, whatever its
        configuration says.
        """
        pass

    @abstractmethod
    def describe(self) -> str:
        """Human readable description of the source"""
        pass

    @abstractmethod
    def can_be_reloaded(self) -> bool:
        """Whether enumerate() may return something new on a second call"""
        pass

    def store_prefs(self, preferences: PreferenceStore, store_passwords: bool) -> None:
        """Persist whatever is needed to restore this source. Nothing by default."""
        pass


class ConnectionFactory(ABC):
    """SSH connection factory interface"""

    @abstractmethod
    def create(self, params: Dict[str, Any]) -> Any:
        """Create and connect SSH client"""
        pass
