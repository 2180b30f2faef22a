"""Constants used throughout tiny-migrator."""

# Control record storage
DEFAULT_COLLECTION_NAME = "migrations"
CONTROL_KEY_FIELD = "key"
CONTROL_KEY = "control"

# Implicit baseline migration
SENTINEL_VERSION = 0
SENTINEL_NAME = "default"

# Command surface
COMMAND_LATEST = "latest"
COMMAND_RERUN = "rerun"
COMMAND_SEPARATOR = ","

# Environment variables
ENV_MIGRATE = "MIGRATE"
ENV_CONFIG = "TINY_MIGRATOR_CONFIG"

# Default file locations
DEFAULT_CONFIG_PATH = "~/.config/tiny-migrator/config.toml"
DEFAULT_DB_PATH = "~/.local/share/tiny-migrator/db.json"

# Name of the module attribute holding migration definitions
MIGRATIONS_ATTRIBUTE = "MIGRATIONS"
REGISTER_HOOK = "register"

# Suffix of the sidecar file used for cross-process locking
LOCK_FILE_SUFFIX = ".lock"

# JSON output formatting
JSON_OUTPUT_INDENT = 2

# Logging configuration
LOGGER_NAME = "tiny_migrator"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
