"""
QDAO Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
import re
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# GOVERNANCE DEFAULTS
# ==================================================================================
# Used when no [governance] section or QDAO_* override is present. A deployed
# engine never changes its parameters after construction.
GOVERNANCE_DEFAULT_MIN_QUORUM = 3           # absolute number of cast votes
GOVERNANCE_DEFAULT_VOTING_DURATION = 100    # logical time units
GOVERNANCE_DEFAULT_EXECUTION_DELAY = 50     # logical time units after deadline

# Significant digits for treasury arithmetic (uint256 range); results that
# would need rounding are rejected
DECIMAL_PRECISION = 78

# Caller-facing error code for wire requests naming no known method
METHOD_NOT_FOUND = "MethodNotFound"
INVALID_PARAMS = "InvalidParams"


# ==================================================================================
# STORAGE
# ==================================================================================
DEFAULT_DB_PATH = "data/qdao.db"
STATE_SCHEMA_VERSION = 1


# ==================================================================================
# VALIDATION PATTERNS
# ==================================================================================
# 20-byte hex account addresses, normalised to EIP-55 checksum form
HEX_ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')

# Post-quantum addresses (0xPQ + 32-byte hash) are accepted as-is
PQ_ADDRESS_PATTERN = re.compile(r'^0xPQ[0-9a-fA-F]{64}$')

MAX_ADDRESS_LENGTH = 256


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = dict(LOGGER_DEFAULTS)
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
