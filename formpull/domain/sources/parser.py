"""
Source location parser
"""
import re
from pathlib import Path

from ...core.constants import DEFAULT_SSH_PORT
from ...core.exceptions import ConfigError, SourceValidationError
from ...core.utils import load_ssh_config
from .models import Source

# Windows drive letters ("C:\...") are local paths, not hosts
_DRIVE_PATH = re.compile(r"^[A-Za-z]:[\\/]")


def parse_source(location: str, default_port: int = DEFAULT_SSH_PORT) -> Source:
    """
    Parse a source location given on the command line.
    
    Supports formats:
    - local-path (no colon) -> Collect directory
    - user@host:path
    - host:path
    - host:~/odk
    
    Host aliases are resolved through ~/.ssh/config when it exists.
    
    Args:
        location: Location string to parse
        default_port: Default SSH port if not specified
    
    Returns:
        Source
    
    Raises:
        SourceValidationError: If location format is invalid
    """
    location = location.strip()
    if not location:
        raise SourceValidationError("Empty source location")
    
    if ":" not in location or _DRIVE_PATH.match(location):
        return Source.collect_directory(Path(location).expanduser())
    
    host_part, remote_path = location.split(":", 1)
    if not host_part or not remote_path:
        raise SourceValidationError(f"Invalid remote source format: {location}")
    
    if "@" in host_part:
        user, host = host_part.rsplit("@", 1)
    else:
        user = None
        host = host_part
    
    try:
        ssh_config = load_ssh_config(host)
    except ConfigError:
        ssh_config = None
    
    if ssh_config:
        return Source.remote_directory(
            host=ssh_config.get("host") or host,
            path=remote_path,
            user=user or ssh_config.get("user"),
            port=int(ssh_config.get("port") or default_port),
            key_file=ssh_config.get("key_file"),
        )
    
    return Source.remote_directory(host=host, path=remote_path, user=user, port=default_port)
