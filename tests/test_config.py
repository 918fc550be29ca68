"""
Configuration loader test suite

Coverage:
  - TOML sections and defaults
  - Environment variable overrides
  - Validation
  - Building an engine from config
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from iterdao.config import GovernanceConfig, load_config
from iterdao.constants import (
    GOVERNANCE_DEFAULT_TIMELOCK_DELAY,
    GOVERNANCE_DEFAULT_VOTE_THRESHOLD,
)
from iterdao.exceptions import ConfigurationError
from iterdao.governance import Governance, ManualClock


SAMPLE_TOML = """
[governor]
vote_threshold = 66
timelock_delay = 120
electorate = "council"

[voting]
trust_caller_weight = true
default_voting_period = 600

[logging]
level = "DEBUG"
"""

ENV_VARS = (
    "ITERDAO_VOTE_THRESHOLD",
    "ITERDAO_TIMELOCK_DELAY",
    "ITERDAO_ELECTORATE",
    "ITERDAO_GOVERNANCE_MINT",
    "ITERDAO_TRUST_CALLER_WEIGHT",
    "ITERDAO_VOTING_PERIOD",
    "ITERDAO_LOG_LEVEL",
    "ITERDAO_LOG_FILE_OUTPUT",
    "ITERDAO_CONFIG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(SAMPLE_TOML)
    return path


class TestLoading:

    def test_from_file(self, config_file):
        cfg = GovernanceConfig.from_file(str(config_file))
        assert cfg.governor.vote_threshold == 66
        assert cfg.governor.timelock_delay == 120
        assert cfg.governor.electorate == "council"
        assert cfg.voting.trust_caller_weight is True
        assert cfg.voting.default_voting_period == 600
        assert cfg.logging.level == "DEBUG"

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = GovernanceConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg.governor.vote_threshold == GOVERNANCE_DEFAULT_VOTE_THRESHOLD
        assert cfg.governor.timelock_delay == GOVERNANCE_DEFAULT_TIMELOCK_DELAY

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[governor\nvote_threshold = ")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            GovernanceConfig.from_file(str(path))

    def test_partial_sections(self):
        cfg = GovernanceConfig.from_dict({"governor": {"vote_threshold": 10}})
        assert cfg.governor.vote_threshold == 10
        assert cfg.logging.level == "INFO"

    def test_load_config_env_path(self, config_file, monkeypatch):
        monkeypatch.setenv("ITERDAO_CONFIG", str(config_file))
        assert load_config().governor.vote_threshold == 66

    def test_to_dict(self, config_file):
        d = GovernanceConfig.from_file(str(config_file)).to_dict()
        assert d["governor"]["vote_threshold"] == 66
        assert d["voting"]["default_voting_period"] == 600


class TestEnvOverrides:

    def test_env_beats_file(self, config_file, monkeypatch):
        monkeypatch.setenv("ITERDAO_VOTE_THRESHOLD", "75")
        monkeypatch.setenv("ITERDAO_TRUST_CALLER_WEIGHT", "false")
        monkeypatch.setenv("ITERDAO_LOG_LEVEL", "WARNING")
        cfg = GovernanceConfig.from_file(str(config_file))
        assert cfg.governor.vote_threshold == 75
        assert cfg.voting.trust_caller_weight is False
        assert cfg.logging.level == "WARNING"


class TestValidation:

    def test_defaults_valid(self):
        assert GovernanceConfig().validate()

    @pytest.mark.parametrize("threshold", [-1, 101])
    def test_bad_threshold(self, threshold):
        cfg = GovernanceConfig.from_dict({"governor": {"vote_threshold": threshold}})
        with pytest.raises(ConfigurationError, match="vote_threshold"):
            cfg.validate()

    def test_bad_delay(self):
        cfg = GovernanceConfig.from_dict({"governor": {"timelock_delay": -5}})
        with pytest.raises(ConfigurationError, match="timelock_delay"):
            cfg.validate()

    def test_bad_voting_period(self):
        cfg = GovernanceConfig.from_dict({"voting": {"default_voting_period": 0}})
        with pytest.raises(ConfigurationError, match="default_voting_period"):
            cfg.validate()

    @pytest.mark.parametrize("data", [
        {"governor": {"vote_threshold": True}},
        {"governor": {"timelock_delay": True}},
        {"voting": {"default_voting_period": True}},
    ])
    def test_booleans_are_not_numbers(self, data):
        cfg = GovernanceConfig.from_dict(data)
        with pytest.raises(ConfigurationError):
            cfg.validate()

    def test_bad_log_level(self):
        cfg = GovernanceConfig.from_dict({"logging": {"level": "LOUD"}})
        with pytest.raises(ConfigurationError, match="Invalid log level"):
            cfg.validate()


class TestEngineFromConfig:

    def test_from_config(self, config_file):
        cfg = GovernanceConfig.from_file(str(config_file))
        engine = Governance.from_config(cfg, authority="admin", clock=ManualClock(0))
        governor = engine.governor
        assert governor.vote_threshold == 66
        assert governor.timelock_delay == 120
        assert governor.electorate == "council"
        assert governor.governance_mint is None
        assert engine.ledger.trust_caller_weight is True
        assert engine.default_voting_period == 600

    def test_invalid_config_rejected(self):
        cfg = GovernanceConfig.from_dict({"governor": {"vote_threshold": 200}})
        with pytest.raises(ConfigurationError):
            Governance.from_config(cfg, authority="admin")
