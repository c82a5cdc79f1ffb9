"""Tests for enhancer.config and strategy parameter validation."""

import os

import pytest

from enhancer.config import Config, load_config
from enhancer.errors import ConfigError
from enhancer.models.parameters import (
    DEFAULT_PARAMETERS,
    IndicatorWeights,
    StrategyParameters,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure enhancer env vars are cleared between tests."""
    for var in ["LOG_LEVEL", "ACCOUNT_EQUITY", "JSON_INDENT"]:
        monkeypatch.delenv(var, raising=False)


def _load(tmp_path):
    # Non-existent env_path so load_dotenv doesn't pick up a real .env file
    return load_config(env_path=str(tmp_path / "nonexistent.env"))


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        cfg = _load(tmp_path)
        assert cfg.log_level == "INFO"
        assert cfg.account_equity is None
        assert cfg.json_indent == 2
        assert cfg.parameters == DEFAULT_PARAMETERS

    def test_reads_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("ACCOUNT_EQUITY", "25000.50")
        monkeypatch.setenv("JSON_INDENT", "4")
        cfg = _load(tmp_path)
        assert cfg.log_level == "DEBUG"
        assert cfg.account_equity == 25_000.50
        assert cfg.json_indent == 4

    def test_reads_dotenv_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("ACCOUNT_EQUITY=5000\n")
        cfg = load_config(env_path=str(env_file))
        # load_dotenv writes straight into os.environ
        os.environ.pop("ACCOUNT_EQUITY", None)
        assert cfg.account_equity == 5_000.0

    def test_invalid_log_level(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        with pytest.raises(ConfigError, match="LOG_LEVEL"):
            _load(tmp_path)

    def test_malformed_equity(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ACCOUNT_EQUITY", "lots")
        with pytest.raises(ConfigError, match="ACCOUNT_EQUITY"):
            _load(tmp_path)

    def test_negative_equity(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ACCOUNT_EQUITY", "-1")
        with pytest.raises(ConfigError, match="ACCOUNT_EQUITY"):
            _load(tmp_path)

    def test_malformed_indent(self, monkeypatch, tmp_path):
        monkeypatch.setenv("JSON_INDENT", "two")
        with pytest.raises(ConfigError, match="JSON_INDENT"):
            _load(tmp_path)

    def test_config_is_frozen(self):
        cfg = Config()
        with pytest.raises(AttributeError):
            cfg.log_level = "DEBUG"


class TestStrategyParameters:
    def test_defaults_are_consistent(self):
        assert DEFAULT_PARAMETERS.validate() is DEFAULT_PARAMETERS

    def test_default_constants(self):
        p = DEFAULT_PARAMETERS
        assert p.breakout_threshold == 0.4
        assert p.confidence_floor == 0.6
        assert p.max_position_pct == 0.10
        assert p.stop_loss_pct == 0.06
        assert p.take_profit_offsets == (0.10, 0.15, 0.20)
        assert p.batch_fractions == (0.50, 0.30, 0.20)

    def test_weights_sum_to_one(self):
        assert IndicatorWeights().total == pytest.approx(1.0)

    def test_exit_batches_pair_index_for_index(self):
        assert DEFAULT_PARAMETERS.exit_batches == [
            (0.50, 0.10), (0.30, 0.15), (0.20, 0.20),
        ]

    def test_rejects_unbalanced_weights(self):
        params = StrategyParameters(weights=IndicatorWeights(volume_surge=0.5))
        with pytest.raises(ConfigError, match="weights"):
            params.validate()

    def test_rejects_fractions_not_summing_to_one(self):
        params = StrategyParameters(batch_fractions=(0.5, 0.3, 0.1))
        with pytest.raises(ConfigError, match="batch_fractions"):
            params.validate()

    def test_rejects_mismatched_lengths(self):
        params = StrategyParameters(take_profit_offsets=(0.10, 0.15))
        with pytest.raises(ConfigError, match="same length"):
            params.validate()

    def test_rejects_bad_stop(self):
        with pytest.raises(ConfigError, match="stop_loss_pct"):
            StrategyParameters(stop_loss_pct=0.0).validate()

    def test_fraction_sum_within_tolerance_accepted(self):
        params = StrategyParameters(batch_fractions=(0.50, 0.30, 0.195))
        assert params.validate() is params
