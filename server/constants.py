"""
World persistence constants

Central location for storage layout, environment variable names and defaults
shared by config.py, world_persistence.py, backup_rotation.py and server.py.
Keeping them here avoids magic strings in the persistence code.
"""

import glob
import re

# =============================================================================
# Storage Layout
# =============================================================================

# Directory (relative to the working directory unless absolute) holding saves
DEFAULT_SAVE_DIR = 'saves'

# Canonical file is <save_dir>/<save_name>.<ext>
DEFAULT_SAVE_NAME = 'world'
DEFAULT_SAVE_EXTENSION = 'json'

# Backups are <save_dir>/<save_name>-<timestamp>.<ext>; second resolution, local time
BACKUP_TIMESTAMP_FORMAT = '%d-%m-%Y_%H-%M-%S'

# Regex for a formatted BACKUP_TIMESTAMP_FORMAT plus the optional same-second suffix
BACKUP_STAMP_REGEX = r"\d{2}-\d{2}-\d{4}_\d{2}-\d{2}-\d{2}(?:_\d+)?"

# Prefix for in-flight temporary files; they never match the backup pattern
TEMP_FILE_PREFIX = '.'
TEMP_FILE_SUFFIX = '.tmp'

# =============================================================================
# Save Cadence & Retention Defaults
# =============================================================================

# Number of saves between backup copies
DEFAULT_BACKUP_INTERVAL = 10

# Number of backup files kept after rotation
DEFAULT_HOLD_BACKUPS = 5

# Autosave period; 0 disables the autosave timer
DEFAULT_SAVE_INTERVAL_MS = 60000

# Window used to coalesce bursts of save requests
DEFAULT_SAVE_DEBOUNCE_MS = 300

DEFAULT_GAME_MODE = 'SURVIVAL'

# =============================================================================
# Environment Variables
# =============================================================================

ENV_SAVE_DIR = 'WORLD_SAVE_DIR'
ENV_SAVE_NAME = 'WORLD_SAVE_NAME'
ENV_SAVE_EXTENSION = 'WORLD_SAVE_EXT'
ENV_BACKUP_INTERVAL = 'WORLD_BACKUP_INTERVAL'
ENV_HOLD_BACKUPS = 'WORLD_HOLD_BACKUPS'
ENV_GAME_MODE = 'WORLD_GAME_MODE'
ENV_SERVER_PASSWORD = 'WORLD_SERVER_PASSWORD'
ENV_ADMIN_PASSWORD = 'WORLD_ADMIN_PASSWORD'
ENV_SAVE_INTERVAL_MS = 'WORLD_SAVE_INTERVAL_MS'
ENV_SAVE_DEBOUNCE_MS = 'WORLD_SAVE_DEBOUNCE_MS'

# Logging: WORLD_LOG_LEVEL (DEBUG|INFO|...) and WORLD_LOG_FORMAT ('text' or 'json')
ENV_LOG_LEVEL = 'WORLD_LOG_LEVEL'
ENV_LOG_FORMAT = 'WORLD_LOG_FORMAT'
DEFAULT_LOG_FORMAT = '[%(levelname)s] %(name)s: %(message)s'
LOG_LEVEL_DEFAULT = 'INFO'

# Set to '1' by the test suite; suppresses background timers and blocking loops
ENV_TEST_MODE = 'TEST_MODE'

# =============================================================================
# Validation
# =============================================================================

CONFIRM_YES = ['yes', 'y', 'true', '1', 'on']
CONFIRM_NO = ['no', 'n', 'false', '0', 'off']


def canonical_file_name(save_name: str, extension: str) -> str:
    """Return the canonical snapshot file name, e.g. 'world.json'."""
    return f"{save_name}.{extension}"


def backup_file_name(save_name: str, extension: str, stamp: str) -> str:
    """Return a backup file name for a formatted timestamp."""
    return f"{save_name}-{stamp}.{extension}"


def backup_glob(save_name: str, extension: str) -> str:
    """Return a glob pattern that finds backup candidates of a save.

    The pattern also matches sibling saves such as 'world-pvp.json';
    filter the results with is_backup_file_name().
    """
    return f"{glob.escape(save_name)}-*.{glob.escape(extension)}"


def is_backup_file_name(save_name: str, extension: str, file_name: str) -> bool:
    """Check that file_name is exactly '<save_name>-<timestamp>[_n].<extension>'."""
    pattern = f"{re.escape(save_name)}-{BACKUP_STAMP_REGEX}\\.{re.escape(extension)}"
    return re.fullmatch(pattern, file_name) is not None


def is_truthy(value) -> bool:
    """Check whether an environment-style flag is switched on."""
    return isinstance(value, str) and value.strip().lower() in CONFIRM_YES
