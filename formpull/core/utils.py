"""
Core utility functions
"""
import paramiko
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from .constants import SSH_CONFIG_PATH
from .exceptions import ConfigError


# ============================================================
# SSH Config Management
# ============================================================

def load_ssh_config(hostname: str) -> Dict[str, Any]:
    """
    Load configuration for specified Host from ~/.ssh/config.
    
    Args:
        hostname: Host name in SSH configuration
    
    Returns:
        Dictionary containing host, user, port, key_file
    
    Raises:
        ConfigError: If ~/.ssh/config doesn't exist
    """
    config_path = Path(SSH_CONFIG_PATH).expanduser()
    if not config_path.exists():
        raise ConfigError(f"{SSH_CONFIG_PATH} does not exist")

    ssh_config = paramiko.SSHConfig.from_path(str(config_path))
    entry = ssh_config.lookup(hostname)

    return {
        "host": entry.get("hostname", hostname),
        "user": entry.get("user", None),
        "port": int(entry.get("port", 22)),
        "key_file": entry.get("identityfile", [None])[0],
    }


# ============================================================
# Path Utilities
# ============================================================

def is_under(path: Path, parent: Path) -> bool:
    """Check whether path is parent or lives somewhere below it"""
    try:
        path.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


def safe_dir_name(name: str) -> str:
    """Turn a form name into something usable as a directory name"""
    cleaned = "".join(c if c.isalnum() or c in " -_." else "_" for c in name).strip()
    return cleaned or "form"


# ============================================================
# Timestamps
# ============================================================

def format_timestamp(value: datetime) -> str:
    """ISO-8601 text used in preferences and status lines"""
    return value.isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, None when absent or malformed"""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
