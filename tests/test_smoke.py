"""Smoke tests for core vestake modules.

These tests verify basic functionality without deep validation.
Run these first to catch obvious breakage.
"""

import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pydantic import ValidationError

from vestake.config.loader import CONFIG_ENV_VAR, DEFAULTS_PATH, load_config, resolve_config_path, save_config
from vestake.config.schema import Config
from vestake.engine.accounting import LedgerSnapshot
from vestake.engine.errors import InsufficientFunds, InvalidInput, LedgerError, NotFound, NothingStaked
from vestake.validation.sanity_checks import SanityChecker


class TestConfigLoading:
    """Smoke tests for configuration loading."""

    def test_load_default_config(self):
        """Config loads without errors."""
        config = load_config()
        assert config is not None
        assert isinstance(config, Config)

    def test_config_has_required_sections(self):
        """Config contains all expected sections."""
        config = load_config()
        assert hasattr(config, 'asset')
        assert hasattr(config, 'vesting')
        assert hasattr(config, 'staking')
        assert hasattr(config, 'simulation')

    def test_config_hash_is_deterministic(self):
        """Same config produces same hash."""
        config1 = load_config()
        config2 = load_config()
        assert config1.compute_hash() == config2.compute_hash()

    def test_default_schedules_are_funded(self):
        """Committed schedule totals fit in the vesting funding."""
        config = load_config()
        assert config.vesting.committed <= config.vesting.funding

    def test_default_rate(self):
        config = load_config()
        assert config.staking.rate == 100

    def test_env_var_overrides_defaults(self, monkeypatch, tmp_path):
        path = save_config(load_config(), tmp_path / "custom.yaml")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert resolve_config_path() == path
        assert load_config().compute_hash() == load_config(DEFAULTS_PATH).compute_hash()

    def test_explicit_path_wins(self, monkeypatch, tmp_path):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.yaml"))
        assert resolve_config_path(DEFAULTS_PATH) == DEFAULTS_PATH


class TestConfigValidation:
    """Smoke tests for schema rejections."""

    def _data(self):
        return load_config().to_dict()

    def test_cliff_beyond_duration_rejected(self):
        data = self._data()
        data['vesting']['schedules'][0]['cliff_delay'] = data['vesting']['schedules'][0]['duration'] + 1
        with pytest.raises(ValidationError):
            Config.from_dict(data)

    def test_allowance_beyond_total_rejected(self):
        data = self._data()
        data['vesting']['schedules'][0]['cliff_allowance'] = data['vesting']['schedules'][0]['total_amount'] + 1
        with pytest.raises(ValidationError):
            Config.from_dict(data)

    def test_duplicate_beneficiary_rejected(self):
        data = self._data()
        data['vesting']['schedules'].append(dict(data['vesting']['schedules'][0]))
        with pytest.raises(ValidationError):
            Config.from_dict(data)

    def test_empty_window_rejected(self):
        data = self._data()
        data['staking']['rewards_end'] = data['staking']['rewards_start']
        with pytest.raises(ValidationError):
            Config.from_dict(data)

    def test_stake_range_ordered(self):
        data = self._data()
        data['simulation']['stake_min'] = data['simulation']['stake_max'] + 1
        with pytest.raises(ValidationError):
            Config.from_dict(data)


class TestSanityChecker:
    """Smoke tests for configuration sanity checks."""

    def test_defaults_have_no_errors(self):
        warnings = SanityChecker(load_config()).check_config_inputs()
        assert [w for w in warnings if w.severity == "error"] == []

    def test_underfunded_vesting_flagged(self):
        data = load_config().to_dict()
        data['vesting']['funding'] = 1
        warnings = SanityChecker(Config.from_dict(data)).check_config_inputs()
        assert any(w.category == "solvency" and w.severity == "error" for w in warnings)

    def test_zero_rate_flagged(self):
        data = load_config().to_dict()
        data['staking']['total_rewards'] = 1
        warnings = SanityChecker(Config.from_dict(data)).check_config_inputs()
        assert any("rounds to zero" in w.message for w in warnings)

    def test_rate_truncation_dust_flagged(self):
        data = load_config().to_dict()
        data['staking']['total_rewards'] += 7
        warnings = SanityChecker(Config.from_dict(data)).check_config_inputs()
        assert any(w.severity == "warning" and "truncation" in w.message for w in warnings)


class TestSnapshots:
    """Smoke tests for snapshot accounting."""

    def _snapshot(self, **overrides):
        values = dict(
            t=0,
            vesting_balance=1_000,
            committed_total=600,
            scheduled_unreleased=600,
            vesting_released=400,
            pool_balance=500,
            total_staked=300,
            stakes_sum=300,
            active_stakers=2,
            rewards_owed=50,
            accumulated=0,
            last_updated=0,
        )
        values.update(overrides)
        return LedgerSnapshot(**values)

    def test_consistent_snapshot(self):
        snapshot = self._snapshot()
        assert snapshot.validate_conservation() == (True, None)
        assert snapshot.validate_solvency() == (True, None)
        assert snapshot.withdrawable == 400
        assert snapshot.reward_reserve == 200

    def test_stake_sum_mismatch_detected(self):
        is_valid, error = self._snapshot(stakes_sum=299).validate_conservation()
        assert not is_valid
        assert error is not None

    def test_undercollateralised_vesting_detected(self):
        is_valid, _ = self._snapshot(committed_total=1_001, scheduled_unreleased=1_001).validate_solvency()
        assert not is_valid


class TestErrors:
    """Smoke tests for the error hierarchy."""

    def test_kinds_and_families(self):
        error = NothingStaked("bob has nothing staked", details={"user": "bob"})
        assert isinstance(error, NotFound)
        assert isinstance(error, LedgerError)
        assert error.kind == "not_found"
        assert error.to_dict()["error"] == "NothingStaked"
        assert error.to_dict()["details"] == {"user": "bob"}

    def test_input_errors_are_value_errors(self):
        assert issubclass(InvalidInput, ValueError)
        assert not issubclass(InsufficientFunds, ValueError)
