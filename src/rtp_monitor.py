#!/usr/bin/env python3
"""
RTP Pump & Drift Detection

Pump: the window's observed RTP sits well above the expected baseline
(returns inflated to hook the player).
Drift: RTP rises from the first half of the window to the second by more
than the wager-level noise can explain (live pumping within a session).

Below-baseline returns and downward drift are a different risk category and
are never flagged here.
"""

import logging
import math
from typing import Dict, List

import numpy as np
from scipy import stats

from analyzer_config import AnalyzerConfig
from spin_models import (
    ANOMALY_DRIFT, ANOMALY_PUMP,
    SEVERITY_CRITICAL, SEVERITY_NONE, SEVERITY_WARNING,
    AnomalyResult, RTPStats, WindowSnapshot,
)

logger = logging.getLogger(__name__)

# Float tolerance on band edges so e.g. an exact 1.10 ratio lands in the band.
_EPSILON = 1e-9


class PumpDetector:
    """
    Compares the window RTP against the (per-game weighted) baseline.

    ratio < warning band           -> none
    warning band <= ratio < crit   -> warning
    ratio >= critical band         -> critical
    """

    anomaly_type = ANOMALY_PUMP

    def evaluate(self, snapshot: WindowSnapshot, config: AnalyzerConfig) -> AnomalyResult:
        return self.evaluate_stats(snapshot.stats, config)

    def evaluate_stats(self, window: RTPStats, config: AnalyzerConfig) -> AnomalyResult:
        baseline = config.effective_baseline(window.game_wagers)
        observed = window.observed_rtp

        if window.spin_count == 0 or window.total_wagers <= 0:
            return AnomalyResult(
                anomaly_type=self.anomaly_type,
                reason='Insufficient wagered volume for pump analysis',
                metadata={'spinCount': window.spin_count, 'baselineRTP': baseline},
            )

        ratio = observed / baseline
        deviation_ratio = ratio - 1.0

        metadata = {
            'observedRTP': observed,
            'baselineRTP': baseline,
            'ratio': ratio,
            'deviationRatio': deviation_ratio,
            'spinCount': window.spin_count,
        }

        if ratio + _EPSILON >= config.pump_critical_ratio:
            severity = SEVERITY_CRITICAL
        elif ratio + _EPSILON >= config.pump_warning_ratio:
            severity = SEVERITY_WARNING
        else:
            severity = SEVERITY_NONE

        detected = severity != SEVERITY_NONE
        confidence = self._confidence(window.spin_count, deviation_ratio, config)

        if detected:
            reason = (f"Observed RTP {observed:.1%} is {deviation_ratio:.1%} above "
                      f"baseline {baseline:.1%} over {window.spin_count} spins")
        elif deviation_ratio <= 0:
            reason = f"Observed RTP {observed:.1%} at or below baseline {baseline:.1%}"
        else:
            reason = f"Observed RTP {observed:.1%} within normal range of baseline {baseline:.1%}"

        return AnomalyResult(
            anomaly_type=self.anomaly_type,
            detected=detected,
            severity=severity,
            confidence=confidence,
            reason=reason,
            metadata=metadata,
        )

    @staticmethod
    def _confidence(spin_count: int, deviation_ratio: float, config: AnalyzerConfig) -> float:
        if deviation_ratio <= 0:
            return 0.0
        sample_confidence = min(1.0, spin_count / config.window_size)
        band = config.pump_warning_ratio - 1.0
        deviation_confidence = min(1.0, deviation_ratio / band) if band > 0 else 1.0
        return sample_confidence * deviation_confidence


class DriftDetector:
    """
    Detects upward RTP drift between the two chronological halves of a window.

    The significance test treats each half's RTP as a ratio estimator
    sum(payout) / sum(wager), whose standard error depends on the wager sizes
    and the spread of individual returns.
    """

    anomaly_type = ANOMALY_DRIFT

    def evaluate(self, snapshot: WindowSnapshot, config: AnalyzerConfig) -> AnomalyResult:
        first, second = snapshot.split_halves()

        if len(first) < config.min_spins_required:
            return AnomalyResult(
                anomaly_type=self.anomaly_type,
                reason='Insufficient spins for drift analysis',
                metadata={
                    'spinCount': len(snapshot),
                    'required': config.min_spins_required * 2,
                },
            )

        first_stats = first.stats
        second_stats = second.stats

        if first_stats.total_wagers <= 0 or second_stats.total_wagers <= 0:
            return AnomalyResult(
                anomaly_type=self.anomaly_type,
                reason='Insufficient wagered volume for drift analysis',
                metadata={'spinCount': len(snapshot)},
            )

        first_rtp = first_stats.observed_rtp
        second_rtp = second_stats.observed_rtp
        delta = second_rtp - first_rtp

        std_error = math.sqrt(
            self.standard_error(first, first_rtp) ** 2 +
            self.standard_error(second, second_rtp) ** 2
        )
        if std_error > 0:
            z_score = delta / std_error
        elif delta > 0:
            z_score = math.inf
        elif delta < 0:
            z_score = -math.inf
        else:
            z_score = 0.0

        p_value = float(stats.norm.sf(z_score))
        baseline = config.effective_baseline(snapshot.stats.game_wagers)
        relative_delta = delta / baseline

        upward = delta > 0 and relative_delta + _EPSILON >= config.drift_min_delta
        if upward and z_score + _EPSILON >= config.drift_z_critical:
            severity = SEVERITY_CRITICAL
        elif upward and z_score + _EPSILON >= config.drift_z_warning:
            severity = SEVERITY_WARNING
        else:
            severity = SEVERITY_NONE

        detected = severity != SEVERITY_NONE
        sample_confidence = min(1.0, len(snapshot) / config.window_size)
        confidence = (1.0 - p_value) * sample_confidence if upward else 0.0

        trend = self.sub_window_trend(snapshot)

        if detected:
            reason = (f"RTP rose from {first_rtp:.1%} to {second_rtp:.1%} within the session "
                      f"(z={z_score:.2f}, baseline {baseline:.1%})")
        elif delta > 0:
            reason = (f"RTP change {first_rtp:.1%} -> {second_rtp:.1%} within expected variance "
                      f"(z={z_score:.2f})")
        else:
            reason = f"No upward RTP drift ({first_rtp:.1%} -> {second_rtp:.1%})"

        return AnomalyResult(
            anomaly_type=self.anomaly_type,
            detected=detected,
            severity=severity,
            confidence=confidence,
            reason=reason,
            metadata={
                'firstHalfRTP': first_rtp,
                'secondHalfRTP': second_rtp,
                'delta': delta,
                'relativeDelta': relative_delta,
                'zScore': z_score,
                'pValue': p_value,
                'threshold': config.drift_z_warning * std_error,
                'baselineRTP': baseline,
                'spinCount': len(snapshot),
                **trend,
            },
        )

    @staticmethod
    def standard_error(half: WindowSnapshot, rtp: float) -> float:
        """Standard error of sum(payout)/sum(wager) for one half."""
        wagers = half.wagers
        payouts = half.payouts
        n = len(wagers)
        total_wager = wagers.sum()
        if n < 2 or total_wager <= 0:
            return 0.0

        residuals = payouts - rtp * wagers
        return float(np.sqrt(np.sum(residuals ** 2) * n / (n - 1)) / total_wager)

    @staticmethod
    def sub_window_trend(snapshot: WindowSnapshot) -> Dict:
        """
        Linear trend of RTP across overlapping sub-windows.

        Informational only; the detection decision uses the half split.
        """
        n = len(snapshot)
        size = min(50, n // 3)
        if size < 2:
            return {'slope': 0.0, 'correlation': 0.0, 'windowsAnalyzed': 0}

        step = max(1, size // 2)
        spins = snapshot.spins
        rtps: List[float] = []
        for start in range(0, n - size + 1, step):
            rtps.append(RTPStats.from_spins(spins[start:start + size]).observed_rtp)

        if len(rtps) < 2:
            return {'slope': 0.0, 'correlation': 0.0, 'windowsAnalyzed': len(rtps)}

        x = np.arange(len(rtps))
        y = np.array(rtps)
        slope = float(np.polyfit(x, y, 1)[0])
        correlation = float(np.corrcoef(x, y)[0, 1]) if np.std(y) > 0 else 0.0

        return {'slope': slope, 'correlation': correlation, 'windowsAnalyzed': len(rtps)}
