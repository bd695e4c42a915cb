"""
In-memory preference storage
"""
import threading
from typing import Dict, List, Mapping, Optional

from ...core.interfaces import PreferenceStore


class InMemoryPreferences(PreferenceStore):
    """Preference store kept in a dictionary, for tests and one-off sessions"""
    
    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._lock = threading.Lock()
        self._values: Dict[str, str] = dict(values or {})
    
    @classmethod
    def empty(cls) -> "InMemoryPreferences":
        return cls()
    
    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)
    
    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value
    
    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)
    
    def keys(self) -> List[str]:
        with self._lock:
            return list(self._values)
    
    def as_dict(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._values)
