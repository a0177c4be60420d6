#!/usr/bin/env python3
"""
Tests for Analyzer Configuration
"""

import pytest
import sys
import os
import logging
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from analyzer_config import AnalyzerConfig, ConfigError


class TestDefaults:
    """Test default configuration values."""

    def test_defaults(self):
        config = AnalyzerConfig()

        assert config.baseline_rtp == 0.96
        assert config.min_spins_required == 10
        assert config.window_size == 50
        assert config.auto_publish is False
        assert config.mobile_optimized is False
        assert config.baselines_by_game == {}

    def test_config_is_immutable(self):
        config = AnalyzerConfig()
        with pytest.raises(AttributeError):
            config.window_size = 10


class TestValidation:
    """Test configuration errors are raised up front."""

    @pytest.mark.parametrize('field_name', ['window_size', 'min_spins_required', 'mobile_batch_size'])
    def test_non_positive_sizes_rejected(self, field_name):
        with pytest.raises(ConfigError):
            AnalyzerConfig(**{field_name: 0})

    def test_negative_baseline_rejected(self):
        with pytest.raises(ConfigError):
            AnalyzerConfig(baseline_rtp=-0.5)

    def test_inverted_pump_band_rejected(self):
        with pytest.raises(ConfigError):
            AnalyzerConfig(pump_warning_ratio=1.3, pump_critical_ratio=1.2)

    def test_unknown_risk_weight_rejected(self):
        with pytest.raises(ConfigError):
            AnalyzerConfig(risk_weights={'jackpot': 10})

    def test_unknown_option_rejected(self):
        with pytest.raises(ConfigError):
            AnalyzerConfig().updated({'notAnOption': 1})

    def test_minimum_larger_than_window_rejected(self):
        with pytest.raises(ConfigError):
            AnalyzerConfig(min_spins_required=60, window_size=50)

    def test_shrinking_window_below_minimum_rejected(self):
        with pytest.raises(ConfigError):
            AnalyzerConfig().updated({'windowSize': 5})

    def test_window_too_small_for_drift_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger='analyzer_config'):
            config = AnalyzerConfig(min_spins_required=30, window_size=50)

        assert config.window_size == 50
        assert any('drift analysis will never run' in r.message for r in caplog.records)

    def test_default_sizes_do_not_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger='analyzer_config'):
            AnalyzerConfig()

        assert caplog.records == []

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestUpdates:
    """Test copy-on-update semantics."""

    def test_updated_returns_new_snapshot(self):
        config = AnalyzerConfig()
        updated = config.updated({'baseline_rtp': 0.95})

        assert updated.baseline_rtp == 0.95
        assert config.baseline_rtp == 0.96

    def test_camel_case_keys_accepted(self):
        config = AnalyzerConfig().updated({
            'baselineRTP': 0.94,
            'minSpinsRequired': 20,
            'windowSize': 100,
            'autoPublish': True,
        })

        assert config.baseline_rtp == 0.94
        assert config.min_spins_required == 20
        assert config.window_size == 100
        assert config.auto_publish is True

    def test_dict_options_merge(self):
        config = AnalyzerConfig().with_game_baseline('slot-a', 0.98)
        config = config.with_game_baseline('slot-b', 0.92)

        assert config.baselines_by_game == {'slot-a': 0.98, 'slot-b': 0.92}

    def test_to_dict_round_trips(self):
        config = AnalyzerConfig(window_size=80).with_game_baseline('slot-a', 0.98)

        assert AnalyzerConfig.from_dict(config.to_dict()) == config

    def test_invalid_update_raises(self):
        with pytest.raises(ConfigError):
            AnalyzerConfig().updated({'window_size': -1})


class TestBaselines:
    """Test the per-game baseline registry."""

    def test_game_override(self):
        config = AnalyzerConfig().with_game_baseline('high-rtp-slot', 0.98)

        assert config.baseline_for_game('high-rtp-slot') == 0.98
        assert config.baseline_for_game('other-slot') == 0.96

    def test_effective_baseline_wager_weighted(self):
        config = AnalyzerConfig().with_game_baseline('a', 1.0)

        assert config.effective_baseline({'a': 250, 'b': 250}) == pytest.approx(0.98)

    def test_effective_baseline_without_games(self):
        assert AnalyzerConfig().effective_baseline({}) == 0.96


class TestYamlLoading:
    """Test loading config.yaml."""

    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / 'config.yaml'
        with open(path, 'w') as f:
            yaml.dump({'analyzer': {'windowSize': 80, 'baselines_by_game': {'slot-x': 0.97}}}, f)
        return str(path)

    def test_from_yaml(self, config_file):
        config = AnalyzerConfig.from_yaml(config_file)

        assert config.window_size == 80
        assert config.baseline_for_game('slot-x') == 0.97

    def test_repo_config_loads(self):
        path = os.path.join(os.path.dirname(__file__), '..', 'config.yaml')
        config = AnalyzerConfig.from_yaml(path)

        assert config.window_size == 50
        assert config.risk_weights['rtp_pump'] == 40


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
