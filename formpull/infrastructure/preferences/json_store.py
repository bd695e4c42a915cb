"""
JSON file preference storage
"""
import json
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from ...core.constants import DEFAULT_PREFERENCES_FILE
from ...core.exceptions import ConfigError
from ...core.interfaces import PreferenceStore
from ...core.logging import get_logger

logger = get_logger(__name__)


class JsonFilePreferences(PreferenceStore):
    """
    File-based preference storage.
    
    Keeps every preference in one flat JSON object on disk. The whole file
    is rewritten on each change, through a temporary file that replaces it,
    so a crash never leaves half a document behind.
    """
    
    def __init__(self, path: Optional[Path] = None):
        """
        Initialize preference store.
        
        Args:
            path: JSON file holding the preferences
        
        Raises:
            ConfigError: If the file exists but is not a JSON object
        """
        if path is None:
            path = Path(DEFAULT_PREFERENCES_FILE)
        
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._values = self._read()
    
    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            raise ConfigError(f"Failed to read preferences {self.path}: {e}") from e
        
        if not isinstance(data, dict):
            raise ConfigError(f"Preferences file {self.path} doesn't hold a JSON object")
        return {str(key): str(value) for key, value in data.items()}
    
    def _write(self) -> None:
        temp_file = self.path.with_suffix(self.path.suffix + '.tmp')
        temp_file.write_text(
            json.dumps(self._values, indent=2, sort_keys=True),
            encoding='utf-8',
        )
        os.replace(temp_file, self.path)
    
    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)
    
    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value
            self._write()
    
    def put_all(self, values: Mapping[str, str]) -> None:
        if not values:
            return
        with self._lock:
            self._values.update(values)
            self._write()
    
    def remove(self, key: str) -> None:
        with self._lock:
            if self._values.pop(key, None) is not None:
                self._write()
    
    def remove_all(self, keys: Iterable[str]) -> None:
        with self._lock:
            removed = [key for key in list(keys) if self._values.pop(key, None) is not None]
            if removed:
                logger.debug("Removed %d preferences from %s", len(removed), self.path)
                self._write()
    
    def keys(self) -> List[str]:
        with self._lock:
            return list(self._values)
