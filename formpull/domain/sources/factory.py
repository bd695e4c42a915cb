"""
Source adapter factory
"""
from pathlib import Path
from typing import Callable, Dict, Optional

from ...core.exceptions import SourceValidationError
from ...core.interfaces import ConnectionFactory
from ...core.logging import get_logger
from ..forms.models import TransferConfiguration
from .collect import CollectLayoutAdapter
from .collect_dir import CollectDirAdapter
from .models import Source, SourceKind
from .remote_dir import RemoteDirAdapter

logger = get_logger(__name__)

AdapterBuilder = Callable[
    [Source, Path, Optional[ConnectionFactory], Optional[TransferConfiguration]],
    CollectLayoutAdapter,
]


def _collect_directory(source, workspace, connection_factory, default_configuration):
    adapter = CollectDirAdapter(workspace, default_configuration)
    return adapter.open(source.payload.path)


def _remote_directory(source, workspace, connection_factory, default_configuration):
    if connection_factory is None:
        raise SourceValidationError("Remote sources need a connection factory")
    adapter = RemoteDirAdapter(source.payload, connection_factory, workspace, default_configuration)
    return adapter.open(source.payload.path)


_BUILDERS: Dict[SourceKind, AdapterBuilder] = {
    SourceKind.COLLECT_DIRECTORY: _collect_directory,
    SourceKind.REMOTE_DIRECTORY: _remote_directory,
}


def register_adapter(kind: SourceKind, builder: AdapterBuilder) -> None:
    """Plug in an adapter for a source kind"""
    _BUILDERS[kind] = builder


def create_adapter(
    source: Source,
    workspace: Path,
    connection_factory: Optional[ConnectionFactory] = None,
    default_configuration: Optional[TransferConfiguration] = None,
):
    """
    Build and validate the adapter of a source.
    
    Args:
        source: Source to adapt
        workspace: Directory pulled forms are installed into
        connection_factory: SSH connection factory for remote sources
        default_configuration: Used for forms without configuration
    
    Returns:
        SourceAdapter pointing at the source's location
    
    Raises:
        SourceValidationError: If the kind has no adapter or the location is invalid
    """
    builder = _BUILDERS.get(source.kind)
    if builder is None:
        raise SourceValidationError(f"Pulling from {source.kind.value} sources is not supported")
    logger.debug("Creating %s adapter for %s", source.kind.value, source.describe())
    return builder(source, Path(workspace), connection_factory, default_configuration)
