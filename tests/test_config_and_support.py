"""
Configuration, Address and Metrics Test Suite

Coverage:
  - TOML loader sections, environment overrides, validation
  - Address normalisation (hex checksum, PQ upper-casing, opaque ids)
  - Prometheus text exposition of the metrics registry
"""

import logging
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from qdao.address import is_valid_address, normalize_address, same_address
from qdao.config import DAOConfig, load_config
from qdao.exceptions import ConfigurationError, InvalidAddressError
from qdao.governance import GovernanceParameters
from qdao.logger import LogManager, get_logger
from qdao.metrics import Counter, Gauge, MetricsRegistry


QDAO_ENV_VARS = (
    "QDAO_CONFIG",
    "QDAO_MIN_QUORUM",
    "QDAO_VOTING_DURATION",
    "QDAO_EXECUTION_DELAY",
    "QDAO_OWNER",
    "QDAO_LOG_LEVEL",
    "QDAO_LOG_FILE",
    "QDAO_DB_PATH",
    "QDAO_METRICS_ENABLED",
)

SAMPLE_TOML = """
[governance]
minimum_quorum = 5
voting_duration = 600
proposal_execution_delay = 120
owner = "0xPQ{owner}"

[logging]
level = "debug"

[database]
type = "sqlite"

[database.sqlite]
path = "{db}"

[metrics]
enabled = true
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in QDAO_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(SAMPLE_TOML.format(owner="A1" * 32, db=tmp_path / "dao.db"))
    return path


# ══════════════════════════════════════════════════════════════════════
#  CONFIG
# ══════════════════════════════════════════════════════════════════════


class TestConfigLoader:

    def test_defaults_when_file_missing(self, tmp_path):
        cfg = DAOConfig.from_file(str(tmp_path / "nope.toml"))
        assert cfg.governance.minimum_quorum == 3
        assert cfg.governance.voting_duration == 100
        assert cfg.governance.proposal_execution_delay == 50
        assert cfg.metrics.enabled is False
        assert cfg.validate()

    def test_load_sections(self, config_file, tmp_path):
        cfg = DAOConfig.from_file(str(config_file))
        assert cfg.governance.minimum_quorum == 5
        assert cfg.governance.owner == "0xPQ" + "A1" * 32
        assert cfg.logging.level == "DEBUG"
        assert cfg.database.sqlite.path == str(tmp_path / "dao.db")
        assert cfg.metrics.enabled is True
        assert cfg.to_parameters() == GovernanceParameters(5, 600, 120)

    def test_env_overrides(self, config_file, monkeypatch):
        monkeypatch.setenv("QDAO_MIN_QUORUM", "7")
        monkeypatch.setenv("QDAO_EXECUTION_DELAY", "0")
        monkeypatch.setenv("QDAO_LOG_LEVEL", "warning")
        monkeypatch.setenv("QDAO_DB_PATH", ":memory:")
        monkeypatch.setenv("QDAO_METRICS_ENABLED", "false")
        cfg = DAOConfig.from_file(str(config_file))
        assert cfg.governance.minimum_quorum == 7
        assert cfg.governance.proposal_execution_delay == 0
        assert cfg.governance.voting_duration == 600
        assert cfg.logging.level == "WARNING"
        assert cfg.database.sqlite.path == ":memory:"
        assert cfg.metrics.enabled is False

    def test_bad_env_integer_raises(self, monkeypatch, tmp_path):
        monkeypatch.setenv("QDAO_VOTING_DURATION", "soon")
        with pytest.raises(ConfigurationError, match="QDAO_VOTING_DURATION"):
            DAOConfig.from_file(str(tmp_path / "missing.toml"))

    def test_invalid_toml_raises(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[governance\nminimum_quorum = ")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            DAOConfig.from_file(str(path))

    def test_validate_rejects_negative(self):
        cfg = DAOConfig()
        cfg.governance.voting_duration = -1
        with pytest.raises(ValueError, match="voting_duration"):
            cfg.validate()

    def test_validate_rejects_log_level(self):
        cfg = DAOConfig()
        cfg.logging.level = "LOUD"
        with pytest.raises(ValueError, match="log level"):
            cfg.validate()

    def test_validate_rejects_database_type(self):
        cfg = DAOConfig.from_dict({"database": {"type": "postgres"}})
        with pytest.raises(ValueError, match="sqlite"):
            cfg.validate()

    def test_load_config_uses_env_path(self, config_file, monkeypatch):
        monkeypatch.setenv("QDAO_CONFIG", str(config_file))
        cfg = load_config()
        assert cfg.governance.minimum_quorum == 5

    def test_to_dict(self, config_file):
        d = load_config(str(config_file)).to_dict()
        assert d["governance"]["voting_duration"] == 600
        assert d["database"]["type"] == "sqlite"

    def test_configure_logging_writes_file(self, tmp_path):
        log_path = tmp_path / "logs" / "qdao.log"
        cfg = DAOConfig.from_dict({
            "logging": {"level": "info", "console": False, "file": str(log_path)},
        })
        try:
            cfg.configure_logging()
            get_logger("qdao.test").info("NewMember \x1b[31m0xPQ%s", "A1" * 32)
            for handler in logging.getLogger().handlers:
                handler.flush()
            text = log_path.read_text(encoding="utf-8")
            assert "NewMember" in text
            assert "\x1b" not in text
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            LogManager().reconfigure()


# ══════════════════════════════════════════════════════════════════════
#  ADDRESSES
# ══════════════════════════════════════════════════════════════════════


class TestAddresses:

    def test_hex_address_checksummed(self):
        raw = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"
        assert normalize_address(raw) == "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"

    def test_pq_address_upper_cased(self):
        raw = "0xPQ" + "ab" * 32
        assert normalize_address(raw) == "0xPQ" + "AB" * 32

    def test_opaque_identity_passes_through(self):
        assert normalize_address("  treasury-bot ") == "treasury-bot"

    def test_invalid_addresses(self):
        for bad in ("", "   ", "a\nb", "x" * 300):
            with pytest.raises(InvalidAddressError):
                normalize_address(bad)
        with pytest.raises(InvalidAddressError):
            normalize_address(42)
        assert not is_valid_address(None)

    def test_same_address(self):
        lower = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"
        upper = "0xD8DA6BF26964AF9D7EED9E03E53415D37AA96045"
        assert same_address(lower, upper)
        assert not same_address(lower, "")


# ══════════════════════════════════════════════════════════════════════
#  METRICS
# ══════════════════════════════════════════════════════════════════════


class TestMetricsRegistry:

    def test_counter_only_goes_up(self):
        c = Counter("qdao_test_total", "test")
        c.inc()
        c.inc(2)
        assert c.value == 3
        with pytest.raises(ValueError):
            c.inc(-1)

    def test_duplicate_registration_raises(self):
        reg = MetricsRegistry()
        reg.register(Gauge("qdao_g"))
        with pytest.raises(ValueError, match="already registered"):
            reg.register(Gauge("qdao_g"))
        assert reg.metric_count == 1

    def test_expose_format(self):
        reg = MetricsRegistry()
        g = Gauge("qdao_member_count", "Current number of members")
        reg.register(g)
        g.set(4)
        text = reg.expose()
        assert "# HELP qdao_member_count Current number of members" in text
        assert "# TYPE qdao_member_count gauge" in text
        assert "qdao_member_count 4" in text
        assert text.endswith("\n")
