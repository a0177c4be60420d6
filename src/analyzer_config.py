#!/usr/bin/env python3
"""
Analyzer Configuration

Immutable configuration snapshot shared by every detector, plus the
per-game baseline registry. Updates build a validated copy that is swapped
in as a whole, so a running analysis never sees a half-applied change.
"""

import logging
import re
from dataclasses import dataclass, field, fields, replace
from typing import Dict, Mapping, Optional

import yaml

from spin_models import (
    ANOMALY_CLUSTERING, ANOMALY_DRIFT, ANOMALY_PUMP, ANOMALY_TYPES,
    SEVERITY_CRITICAL, SEVERITY_NONE, SEVERITY_WARNING,
)

logger = logging.getLogger(__name__)


# Risk score points per anomaly type at full (critical) severity.
DEFAULT_RISK_WEIGHTS = {
    ANOMALY_PUMP: 40.0,
    ANOMALY_CLUSTERING: 30.0,
    ANOMALY_DRIFT: 30.0,
}

DEFAULT_SEVERITY_FACTORS = {
    SEVERITY_NONE: 0.0,
    SEVERITY_WARNING: 0.5,
    SEVERITY_CRITICAL: 1.0,
}

MAX_BASELINE_RTP = 10.0


class ConfigError(ValueError):
    """Raised for invalid analyzer configuration."""


def _snake_case(name: str) -> str:
    name = re.sub(r'RTP', 'Rtp', name)
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


@dataclass(frozen=True)
class AnalyzerConfig:
    baseline_rtp: float = 0.96
    min_spins_required: int = 10
    window_size: int = 50
    auto_publish: bool = False
    auto_analyze: bool = False
    mobile_optimized: bool = False
    mobile_batch_size: int = 25
    history_limit: int = 50

    # Pump: observed/baseline ratio bands
    pump_warning_ratio: float = 1.10
    pump_critical_ratio: float = 1.25

    # Clustering: multiples of the expected longest win run
    cluster_warning_multiplier: float = 1.75
    cluster_critical_multiplier: float = 2.5
    cluster_significance: float = 0.05

    # Drift: one-sided z-score bands and minimum relative delta
    drift_z_warning: float = 2.5
    drift_z_critical: float = 3.5
    drift_min_delta: float = 0.05

    risk_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_RISK_WEIGHTS))
    severity_factors: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SEVERITY_FACTORS))
    baselines_by_game: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        self.validate()

    def validate(self):
        for name in ('min_spins_required', 'window_size', 'mobile_batch_size', 'history_limit'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")

        if self.min_spins_required > self.window_size:
            raise ConfigError(f"min_spins_required ({self.min_spins_required}) exceeds "
                              f"window_size ({self.window_size}); no session could be analyzed")
        if 2 * self.min_spins_required > self.window_size:
            logger.warning(f"window_size {self.window_size} is below twice min_spins_required "
                           f"({self.min_spins_required}); drift analysis will never run")

        _check_baseline('baseline_rtp', self.baseline_rtp)
        for game_id, baseline in self.baselines_by_game.items():
            _check_baseline(f"baseline for game {game_id!r}", baseline)

        _check_band('pump ratio', self.pump_warning_ratio, self.pump_critical_ratio, floor=1.0)
        _check_band('cluster multiplier', self.cluster_warning_multiplier,
                    self.cluster_critical_multiplier, floor=1.0)
        _check_band('drift z-score', self.drift_z_warning, self.drift_z_critical, floor=0.0)

        if not 0 < self.cluster_significance <= 1:
            raise ConfigError(f"cluster_significance must be in (0, 1], got {self.cluster_significance!r}")

        if self.drift_min_delta < 0:
            raise ConfigError(f"drift_min_delta must be >= 0, got {self.drift_min_delta!r}")

        unknown = set(self.risk_weights) - set(ANOMALY_TYPES)
        if unknown:
            raise ConfigError(f"Unknown anomaly types in risk_weights: {sorted(unknown)}")
        if any(w < 0 for w in self.risk_weights.values()):
            raise ConfigError("risk_weights must be non-negative")

        factors = self.severity_factors
        if set(factors) != set(DEFAULT_SEVERITY_FACTORS):
            raise ConfigError(f"severity_factors must define exactly {sorted(DEFAULT_SEVERITY_FACTORS)}")
        if not (factors[SEVERITY_NONE] == 0 <= factors[SEVERITY_WARNING] < factors[SEVERITY_CRITICAL]):
            raise ConfigError("severity_factors must satisfy none == 0 <= warning < critical")

    def baseline_for_game(self, game_id: Optional[str]) -> float:
        if game_id is None:
            return self.baseline_rtp
        return self.baselines_by_game.get(game_id, self.baseline_rtp)

    def effective_baseline(self, game_wagers: Optional[Mapping[str, float]] = None) -> float:
        """Wager-weighted baseline across the games played in a window."""
        if not game_wagers:
            return self.baseline_rtp

        total = sum(game_wagers.values())
        if total <= 0:
            return self.baseline_rtp

        return sum(self.baseline_for_game(g) * w for g, w in game_wagers.items()) / total

    def updated(self, changes: Mapping) -> 'AnalyzerConfig':
        """Validated copy with ``changes`` applied (camelCase keys accepted)."""
        known = {f.name for f in fields(self)}
        normalized = {}
        for key, value in changes.items():
            name = key if key in known else _snake_case(key)
            if name not in known:
                raise ConfigError(f"Unknown config option: {key!r}")
            if name in ('risk_weights', 'severity_factors', 'baselines_by_game'):
                merged = dict(getattr(self, name))
                merged.update(value or {})
                value = merged
            normalized[name] = value
        return replace(self, **normalized)

    def with_game_baseline(self, game_id: str, baseline: float) -> 'AnalyzerConfig':
        return self.updated({'baselines_by_game': {game_id: baseline}})

    def to_dict(self) -> Dict:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = dict(value) if isinstance(value, dict) else value
        return result

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> 'AnalyzerConfig':
        return cls().updated(data or {})

    @classmethod
    def from_yaml(cls, config_path: str) -> 'AnalyzerConfig':
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}

        section = config.get('analyzer', config)
        if not isinstance(section, dict):
            raise ConfigError(f"Config section 'analyzer' in {config_path} must be a mapping")

        logger.info(f"Loaded analyzer config from {config_path}")
        return cls.from_dict(section)


def _check_baseline(label: str, value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{label} must be a number, got {value!r}")
    if not 0 < value <= MAX_BASELINE_RTP:
        raise ConfigError(f"{label} must be in (0, {MAX_BASELINE_RTP}], got {value!r}")


def _check_band(label: str, warning: float, critical: float, floor: float):
    if warning < floor:
        raise ConfigError(f"{label} warning threshold must be >= {floor}, got {warning!r}")
    if warning >= critical:
        raise ConfigError(f"{label} warning threshold ({warning}) must be below critical ({critical})")
