"""
IterDAO TOML Configuration Loader

Loads every section of config.toml with environment variable overrides
(dataclass + from_dict + from_file).

Environment variable mapping:
    [governor] vote_threshold       → ITERDAO_VOTE_THRESHOLD
    [governor] timelock_delay       → ITERDAO_TIMELOCK_DELAY
    [voting] trust_caller_weight    → ITERDAO_TRUST_CALLER_WEIGHT
    [voting] default_voting_period  → ITERDAO_VOTING_PERIOD
    [logging] level                 → ITERDAO_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib as tomli
else:
    import tomli

from ..constants import (
    GOVERNANCE_DEFAULT_TIMELOCK_DELAY,
    GOVERNANCE_DEFAULT_VOTE_THRESHOLD,
    GOVERNANCE_DEFAULT_VOTING_PERIOD,
    GOVERNANCE_MAX_VOTE_THRESHOLD,
    I64_MAX,
    ITERDAO_CONFIG,
    ITERDAO_TRUST_CALLER_WEIGHT,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def _is_int(value: Any) -> bool:
    """TOML booleans are ints to Python; they are not valid numbers here."""
    return isinstance(value, int) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class GovernorSectionConfig:
    """[governor] section."""
    vote_threshold: int = GOVERNANCE_DEFAULT_VOTE_THRESHOLD
    timelock_delay: int = GOVERNANCE_DEFAULT_TIMELOCK_DELAY
    electorate: str = ""
    governance_mint: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernorSectionConfig":
        return cls(
            vote_threshold=data.get("vote_threshold", GOVERNANCE_DEFAULT_VOTE_THRESHOLD),
            timelock_delay=data.get("timelock_delay", GOVERNANCE_DEFAULT_TIMELOCK_DELAY),
            electorate=data.get("electorate", ""),
            governance_mint=data.get("governance_mint", ""),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("ITERDAO_VOTE_THRESHOLD"):
            self.vote_threshold = int(v)
        if v := os.environ.get("ITERDAO_TIMELOCK_DELAY"):
            self.timelock_delay = int(v)
        if v := os.environ.get("ITERDAO_ELECTORATE"):
            self.electorate = v
        if v := os.environ.get("ITERDAO_GOVERNANCE_MINT"):
            self.governance_mint = v


@dataclass
class VotingConfig:
    """[voting] section."""
    trust_caller_weight: bool = bool(ITERDAO_TRUST_CALLER_WEIGHT)
    default_voting_period: int = GOVERNANCE_DEFAULT_VOTING_PERIOD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VotingConfig":
        return cls(
            trust_caller_weight=data.get("trust_caller_weight", bool(ITERDAO_TRUST_CALLER_WEIGHT)),
            default_voting_period=data.get("default_voting_period", GOVERNANCE_DEFAULT_VOTING_PERIOD),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ITERDAO_TRUST_CALLER_WEIGHT"):
            self.trust_caller_weight = _env_bool(v)
        if v := os.environ.get("ITERDAO_VOTING_PERIOD"):
            self.default_voting_period = int(v)


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=data.get("level", "INFO"),
            file_output=data.get("file_output", False),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ITERDAO_LOG_LEVEL"):
            self.level = v
        if v := os.environ.get("ITERDAO_LOG_FILE_OUTPUT"):
            self.file_output = _env_bool(v)


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class GovernanceConfig:
    """
    Unified governance configuration.

    Loads every section of config.toml and applies environment variable
    overrides.  This is the single source of truth at bootstrap.
    """
    governor: GovernorSectionConfig = field(default_factory=GovernorSectionConfig)
    voting: VotingConfig = field(default_factory=VotingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        """Create GovernanceConfig from a parsed TOML dict."""
        return cls(
            governor=GovernorSectionConfig.from_dict(data.get("governor", {})),
            voting=VotingConfig.from_dict(data.get("voting", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "GovernanceConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (with env overrides); a malformed
        one raises ConfigurationError.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s — using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.governor.apply_env()
        self.voting.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        threshold = self.governor.vote_threshold
        if not _is_int(threshold) or not 0 <= threshold <= GOVERNANCE_MAX_VOTE_THRESHOLD:
            raise ConfigurationError(
                f"vote_threshold must be between 0 and {GOVERNANCE_MAX_VOTE_THRESHOLD}"
            )
        delay = self.governor.timelock_delay
        if not _is_int(delay) or not 0 <= delay <= I64_MAX:
            raise ConfigurationError("timelock_delay must be a non-negative integer")
        period = self.voting.default_voting_period
        if not _is_int(period) or not 0 < period <= I64_MAX:
            raise ConfigurationError("default_voting_period must be a positive integer")
        if self.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "governor": {
                "vote_threshold": self.governor.vote_threshold,
                "timelock_delay": self.governor.timelock_delay,
                "electorate": self.governor.electorate,
                "governance_mint": self.governor.governance_mint,
            },
            "voting": {
                "trust_caller_weight": self.voting.trust_caller_weight,
                "default_voting_period": self.voting.default_voting_period,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> GovernanceConfig:
    """
    Load governance configuration.

    Resolution order:
        1. Explicit *path* argument
        2. ITERDAO_CONFIG env var
        3. ITERDAO_CONFIG from .env, else ./config.toml
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("ITERDAO_CONFIG", str(ITERDAO_CONFIG))

    return GovernanceConfig.from_file(path)
