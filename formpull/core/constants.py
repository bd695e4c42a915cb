"""
Project constants definitions
"""

# ============================================================
# Preference Keys
# ============================================================

CUSTOM_CONF_PREFIX = "exportConf."
LAST_TRANSFER_PREFIX = "exportDateTime."
SOURCE_PREF_PREFIX = "pull_source."
START_FROM_LAST_KEY = "pull.start_from_last"
STORE_PASSWORDS_CONSENT_KEY = "store_passwords_consent"

# ============================================================
# Collect Storage Layout
# ============================================================

COLLECT_FORMS_DIR = "forms"
COLLECT_INSTANCES_DIR = "instances"
MEDIA_DIR_SUFFIX = "-media"
WORKSPACE_FORMS_DIR = "forms"

# ============================================================
# Default Values
# ============================================================

DEFAULT_SSH_PORT = 22
DEFAULT_SSH_TIMEOUT = 10
DEFAULT_MAX_WORKERS = 4
DEFAULT_LOG_LEVEL = "INFO"

# ============================================================
# State Storage
# ============================================================

DEFAULT_WORKSPACE_DIR = "~/.formpull/workspace"
DEFAULT_PREFERENCES_FILE = "~/.formpull/preferences.json"
DEFAULT_CONFIG_FILE = "~/.formpull/config.toml"

# ============================================================
# SSH Config
# ============================================================

SSH_CONFIG_PATH = "~/.ssh/config"
