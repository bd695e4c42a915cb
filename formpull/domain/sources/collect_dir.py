"""
Collect storage directory on the local filesystem
"""
from pathlib import Path
from typing import Union

from ...core.utils import is_under
from .collect import CollectLayoutAdapter
from .storage import LocalStorage


class CollectDirAdapter(CollectLayoutAdapter):
    """
    A Collect storage directory copied to (or mounted on) this machine.

    The directory must exist, contain a ``forms`` folder and not live inside
    the workspace forms are pulled into.
    """

    _storage = LocalStorage()

    def open_storage(self) -> LocalStorage:
        return self._storage

    def validate(self, location: Union[str, Path]) -> bool:
        path = Path(location).expanduser()
        if is_under(path, self.workspace):
            return False
        return self.has_collect_layout(self._storage, str(path))

    def describe(self) -> str:
        return self.root or "Collect directory"

    def can_be_reloaded(self) -> bool:
        return False
