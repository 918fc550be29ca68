"""
IterDAO Configuration

Loads all sections of config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    GovernanceConfig,
    GovernorSectionConfig,
    LoggingConfig,
    VotingConfig,
    load_config,
)

__all__ = [
    "GovernanceConfig",
    "GovernorSectionConfig",
    "LoggingConfig",
    "VotingConfig",
    "load_config",
]
