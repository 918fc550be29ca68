"""
IterDAO Constants

This module consolidates the global constants and environment configuration
used throughout the governance engine. Constants are organized by category
for easy reference and maintenance.
"""
import ast
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

GOVERNOR_DEFAULTS = {
    'ITERDAO_CONFIG':                  'config.toml',
    'ITERDAO_TRUST_CALLER_WEIGHT':     'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# INTEGER DOMAINS
# ==================================================================================
# Weights and tally counters are unsigned 64-bit; timestamps, durations and
# delays are signed 64-bit.
U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


# ==================================================================================
# GOVERNANCE PARAMETERS
# ==================================================================================
GOVERNANCE_MAX_VOTE_THRESHOLD = 100  # Threshold is an integer percent
GOVERNANCE_DEFAULT_VOTE_THRESHOLD = 50
GOVERNANCE_DEFAULT_TIMELOCK_DELAY = 3600  # 1 hour
GOVERNANCE_DEFAULT_VOTING_PERIOD = 86400  # 24 hours
EVENT_HISTORY_SIZE = 1024  # Published events an EventBus keeps for inspection

# Seed prefixes for deterministic record addresses
SEED_GOVERNOR = b"governor"
SEED_PROPOSAL = b"proposal"
SEED_VOTE = b"vote"
ADDRESS_DIGEST_SIZE = 32


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
DEFAULTS = LOGGER_DEFAULTS | GOVERNOR_DEFAULTS
namespace = globals()

def parse_bool(v):
    """Turn a "true"/"false" string (any case) into a bool; pass anything else through."""
    if not isinstance(v, str):
        return v
    s = v.strip()
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

# Publish every setting as a module constant: .env value if present,
# otherwise the default, remembering the default either way.
for key, default_raw in DEFAULTS.items():
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw
    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
