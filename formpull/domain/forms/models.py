"""
Form domain models
"""
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from ...core.utils import format_timestamp


@dataclass(frozen=True)
class FormDescriptor:
    """What a source knows about one form"""
    form_id: str
    name: str
    file_path: Optional[Path] = None
    is_encrypted: bool = False


_TRUE_VALUES = ("true", "yes", "1")


@dataclass(frozen=True)
class TransferConfiguration:
    """Per-form transfer options"""
    target_dir: Optional[Path] = None
    overwrite: bool = False
    include_media: bool = True
    start_from_last: bool = False

    def is_valid(self) -> bool:
        return self.target_dir is not None

    def as_prefs(self, prefix: str) -> Dict[str, str]:
        """
        Flatten into preference entries, one per option that has a value.

        Args:
            prefix: Key prefix, e.g. "exportConf.<formId>."

        Returns:
            Dictionary of preference key to string value
        """
        prefs = {}
        for option in fields(self):
            value = getattr(self, option.name)
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            prefs[f"{prefix}{option.name}"] = str(value)
        return prefs

    @classmethod
    def from_prefs(cls, prefix: str, prefs: Mapping[str, str]) -> "TransferConfiguration":
        """Inverse of as_prefs; options missing from prefs keep their defaults"""
        values = {}
        for option in fields(cls):
            raw = prefs.get(f"{prefix}{option.name}")
            if raw is None:
                continue
            if option.name == "target_dir":
                values[option.name] = Path(raw)
            else:
                values[option.name] = raw.strip().lower() in _TRUE_VALUES
        return cls(**values)

    @classmethod
    def option_names(cls) -> List[str]:
        return [option.name for option in fields(cls)]


@dataclass(frozen=True)
class StatusEntry:
    """One line of a form's status history"""
    timestamp: datetime
    message: str

    def format(self) -> str:
        return f"{format_timestamp(self.timestamp)} {self.message}"


@dataclass(eq=False)
class FormRecord:
    """
    A form tracked by the registry.

    Only TransferRegistry mutates records; everything else reads them.
    """
    descriptor: FormDescriptor
    selected: bool = False
    configuration: Optional[TransferConfiguration] = None
    last_transfer: Optional[datetime] = None
    _history: List[StatusEntry] = field(default_factory=list, repr=False)

    @property
    def form_id(self) -> str:
        return self.descriptor.form_id

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def file_path(self) -> Optional[Path]:
        return self.descriptor.file_path

    @property
    def is_encrypted(self) -> bool:
        return self.descriptor.is_encrypted

    @property
    def status_history(self) -> Tuple[StatusEntry, ...]:
        return tuple(self._history)

    @property
    def status_history_text(self) -> str:
        """History as text, each entry on its own line after a leading newline"""
        return "".join(f"\n{entry.format()}" for entry in self._history)

    @property
    def last_status(self) -> Optional[StatusEntry]:
        return self._history[-1] if self._history else None

    def has_configuration(self) -> bool:
        return self.configuration is not None
