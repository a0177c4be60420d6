#!/usr/bin/env python3
"""
Win Streak Monitor

Flags win clustering: a longest run of consecutive wins that a fair,
independent sequence with the session's own win rate would very rarely
produce.

This does not care whether wins are "due". It only asks whether the
ordering of wins inside the window looks random.
"""

import logging
import math
from typing import Dict, List

import numpy as np

from analyzer_config import AnalyzerConfig
from spin_models import (
    ANOMALY_CLUSTERING,
    SEVERITY_CRITICAL, SEVERITY_NONE, SEVERITY_WARNING,
    AnomalyResult, WindowSnapshot,
)

logger = logging.getLogger(__name__)


def win_streaks(win_flags) -> List[int]:
    """Lengths of every run of consecutive wins, in order."""
    streaks = []
    current_streak = 0

    for is_win in win_flags:
        if is_win:
            current_streak += 1
        else:
            if current_streak > 0:
                streaks.append(current_streak)
            current_streak = 0

    if current_streak > 0:
        streaks.append(current_streak)

    return streaks


def expected_longest_run(n: int, p: float) -> float:
    """
    Approximate expected longest win run in n Bernoulli(p) trials,
    log(n) / log(1/p), floored at one spin.
    """
    if n <= 0 or p <= 0:
        return 0.0
    if p >= 1:
        return float(n)
    return max(1.0, math.log(n) / math.log(1.0 / p))


def longest_run_tail_probability(n: int, p: float, k: int) -> float:
    """
    Exact P(longest run of successes >= k) over n Bernoulli(p) trials.

    Dynamic programming over the length of the current run; runs reaching
    k are absorbed, so the surviving mass is P(longest run < k).
    """
    if k <= 0:
        return 1.0
    if k > n or p <= 0:
        return 0.0
    if p >= 1:
        return 1.0

    state = np.zeros(k)
    state[0] = 1.0
    for _ in range(n):
        next_state = np.empty_like(state)
        next_state[0] = (1.0 - p) * state.sum()
        next_state[1:] = p * state[:-1]
        state = next_state

    return float(min(1.0, max(0.0, 1.0 - state.sum())))


class ClusterDetector:
    """
    Compares the longest win streak in the window to the expected longest
    run under the geometric-run model.

    Severity scales with excess = max_streak / expected:
      excess >= warning multiplier  -> warning
      excess >= critical multiplier -> critical
    and the streak must also be improbable (tail probability below the
    configured significance level).
    """

    anomaly_type = ANOMALY_CLUSTERING

    def evaluate(self, snapshot: WindowSnapshot, config: AnalyzerConfig) -> AnomalyResult:
        spin_count = len(snapshot)
        if spin_count < config.min_spins_required:
            return AnomalyResult(
                anomaly_type=self.anomaly_type,
                reason='Insufficient spins for cluster analysis',
                metadata={'spinCount': spin_count, 'required': config.min_spins_required},
            )

        streak_stats = self.calculate_streak_stats(snapshot.win_flags)
        max_streak = streak_stats['maxStreak']
        win_rate = streak_stats['winRate']
        expected = expected_longest_run(spin_count, win_rate)
        excess = max_streak / expected if expected > 0 else 0.0
        tail_probability = longest_run_tail_probability(spin_count, win_rate, max_streak)

        significant = tail_probability < config.cluster_significance
        if significant and excess >= config.cluster_critical_multiplier:
            severity = SEVERITY_CRITICAL
        elif significant and excess >= config.cluster_warning_multiplier:
            severity = SEVERITY_WARNING
        else:
            severity = SEVERITY_NONE

        detected = severity != SEVERITY_NONE
        confidence = self._confidence(spin_count, excess, tail_probability, config)

        if detected:
            reason = (f"Longest win streak of {max_streak} is {excess:.1f}x the expected "
                      f"{expected:.1f} at a {win_rate:.0%} win rate (p={tail_probability:.4f})")
        else:
            reason = (f"Win streaks consistent with a {win_rate:.0%} win rate "
                      f"(longest {max_streak}, expected {expected:.1f})")

        if severity == SEVERITY_CRITICAL:
            logger.debug(f"Critical win clustering: streak={max_streak}, p={tail_probability:.2e}")

        return AnomalyResult(
            anomaly_type=self.anomaly_type,
            detected=detected,
            severity=severity,
            confidence=confidence,
            reason=reason,
            metadata={
                **streak_stats,
                'expectedMaxStreak': expected,
                'excessRatio': excess,
                'tailProbability': tail_probability,
                'spinCount': spin_count,
            },
        )

    @staticmethod
    def _confidence(spin_count: int, excess: float, tail_probability: float,
                    config: AnalyzerConfig) -> float:
        # Zero until the longest streak exceeds the expected run
        if excess <= 1.0:
            return 0.0
        sample_confidence = min(1.0, spin_count / config.window_size)
        band = config.cluster_warning_multiplier - 1.0
        excess_confidence = min(1.0, (excess - 1.0) / band) if band > 0 else 1.0
        return (1.0 - tail_probability) * sample_confidence * excess_confidence

    @staticmethod
    def calculate_streak_stats(win_flags) -> Dict:
        flags = np.asarray(win_flags, dtype=bool)
        streaks = win_streaks(flags)
        wins = int(flags.sum())

        return {
            'maxStreak': max(streaks) if streaks else 0,
            'winRate': wins / len(flags) if len(flags) else 0.0,
            'wins': wins,
            'streakCount': len(streaks),
            'avgStreakLength': float(np.mean(streaks)) if streaks else 0.0,
        }
