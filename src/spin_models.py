#!/usr/bin/env python3
"""
Spin & Report Data Model

Records exchanged between ingestion, the detectors and the delivery layer:
raw spins, windowed RTP statistics, per-detector anomaly results and the
combined analysis report.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np


ANOMALY_PUMP = 'rtp_pump'
ANOMALY_CLUSTERING = 'win_clustering'
ANOMALY_DRIFT = 'rtp_drift'
ANOMALY_TYPES = (ANOMALY_PUMP, ANOMALY_CLUSTERING, ANOMALY_DRIFT)

SEVERITY_NONE = 'none'
SEVERITY_WARNING = 'warning'
SEVERITY_CRITICAL = 'critical'
SEVERITY_RANK = {SEVERITY_NONE: 0, SEVERITY_WARNING: 1, SEVERITY_CRITICAL: 2}


class InvalidSpinError(ValueError):
    """Raised when spin data is rejected at the ingestion boundary."""


def session_key(user_id: str, casino_id: str) -> str:
    return f"{user_id}:{casino_id}"


def _finite_or_none(value):
    # JSON has no Infinity/NaN; an infinite z-score serializes as null
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True)
class SpinResult:
    """Single spin as reported by the client. Immutable once recorded."""
    spin_id: str
    user_id: str
    casino_id: str
    game_id: str
    wager: float
    payout: float
    timestamp: int
    is_bonus: bool = False
    session_id: Optional[str] = None

    def __post_init__(self):
        for name in ('wager', 'payout'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidSpinError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value) or value < 0:
                raise InvalidSpinError(f"{name} must be a finite number >= 0, got {value!r}")

        ts = self.timestamp
        if isinstance(ts, bool) or not isinstance(ts, (int, float)):
            raise InvalidSpinError(f"timestamp must be integer milliseconds, got {ts!r}")
        if isinstance(ts, float):
            if not ts.is_integer():
                raise InvalidSpinError(f"timestamp must be integer milliseconds, got {ts!r}")
            object.__setattr__(self, 'timestamp', int(ts))

    @property
    def key(self) -> str:
        return session_key(self.user_id, self.casino_id)

    @property
    def is_win(self) -> bool:
        return self.payout > 0

    def to_dict(self) -> Dict:
        return {
            'spin_id': self.spin_id,
            'user_id': self.user_id,
            'casino_id': self.casino_id,
            'game_id': self.game_id,
            'wager': self.wager,
            'payout': self.payout,
            'timestamp': self.timestamp,
            'is_bonus': self.is_bonus,
            'session_id': self.session_id,
        }


@dataclass(frozen=True)
class RTPStats:
    """Return-to-player aggregates over a window of spins."""
    observed_rtp: float = 0.0
    total_wagers: float = 0.0
    total_payouts: float = 0.0
    spin_count: int = 0
    window_start: int = 0
    window_end: int = 0
    game_wagers: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_spins(cls, spins) -> 'RTPStats':
        if not spins:
            return cls()

        wagers = np.fromiter((s.wager for s in spins), dtype=float, count=len(spins))
        payouts = np.fromiter((s.payout for s in spins), dtype=float, count=len(spins))
        total_wagers = float(wagers.sum())
        total_payouts = float(payouts.sum())

        game_wagers: Dict[str, float] = {}
        for spin in spins:
            game_wagers[spin.game_id] = game_wagers.get(spin.game_id, 0.0) + spin.wager

        return cls(
            observed_rtp=total_payouts / total_wagers if total_wagers > 0 else 0.0,
            total_wagers=total_wagers,
            total_payouts=total_payouts,
            spin_count=len(spins),
            window_start=spins[0].timestamp,
            window_end=spins[-1].timestamp,
            game_wagers=game_wagers,
        )

    def to_dict(self) -> Dict:
        return {
            'observed_rtp': self.observed_rtp,
            'total_wagers': self.total_wagers,
            'total_payouts': self.total_payouts,
            'spin_count': self.spin_count,
            'window_start': self.window_start,
            'window_end': self.window_end,
        }


@dataclass(frozen=True)
class WindowSnapshot:
    """
    Point-in-time copy of a session window.

    Detectors only ever see a snapshot, so analysis never races with
    ingestion on the same session.
    """
    spins: Tuple[SpinResult, ...] = ()

    def __len__(self) -> int:
        return len(self.spins)

    @property
    def stats(self) -> RTPStats:
        return RTPStats.from_spins(self.spins)

    @property
    def wagers(self) -> np.ndarray:
        return np.array([s.wager for s in self.spins], dtype=float)

    @property
    def payouts(self) -> np.ndarray:
        return np.array([s.payout for s in self.spins], dtype=float)

    @property
    def win_flags(self) -> np.ndarray:
        return np.array([s.is_win for s in self.spins], dtype=bool)

    def split_halves(self) -> Tuple['WindowSnapshot', 'WindowSnapshot']:
        """Chronological split; the second half takes the odd spin."""
        mid = len(self.spins) // 2
        return WindowSnapshot(self.spins[:mid]), WindowSnapshot(self.spins[mid:])


@dataclass(frozen=True)
class AnomalyResult:
    """Outcome of one detector over one window."""
    anomaly_type: str
    detected: bool = False
    severity: str = SEVERITY_NONE
    confidence: float = 0.0
    reason: str = ''
    metadata: Dict = field(default_factory=dict)

    @property
    def severity_rank(self) -> int:
        return SEVERITY_RANK[self.severity]

    def to_dict(self) -> Dict:
        return {
            'anomaly_type': self.anomaly_type,
            'detected': self.detected,
            'severity': self.severity,
            'confidence': round(self.confidence, 4),
            'reason': self.reason,
            'metadata': {k: _finite_or_none(v) for k, v in self.metadata.items()},
        }


@dataclass(frozen=True)
class AnalysisReport:
    """Combined result of one session analysis."""
    user_id: str
    casino_id: str
    session_id: str
    window: RTPStats
    pump_analysis: AnomalyResult
    cluster_analysis: AnomalyResult
    drift_analysis: AnomalyResult
    overall_risk_score: int
    risk_level: str
    recommendations: Tuple[str, ...]
    generated_at: int

    @property
    def analyses(self) -> Tuple[AnomalyResult, AnomalyResult, AnomalyResult]:
        return (self.pump_analysis, self.cluster_analysis, self.drift_analysis)

    @property
    def detected_anomalies(self) -> List[AnomalyResult]:
        return [a for a in self.analyses if a.detected]

    def to_dict(self) -> Dict:
        return {
            'user_id': self.user_id,
            'casino_id': self.casino_id,
            'session_id': self.session_id,
            'window': self.window.to_dict(),
            'pump_analysis': self.pump_analysis.to_dict(),
            'cluster_analysis': self.cluster_analysis.to_dict(),
            'drift_analysis': self.drift_analysis.to_dict(),
            'overall_risk_score': self.overall_risk_score,
            'risk_level': self.risk_level,
            'recommendations': list(self.recommendations),
            'generated_at': self.generated_at,
        }


@dataclass(frozen=True)
class MobileAnomalySummary:
    """Field-name-shortened projection of a report for mobile clients."""
    sid: str
    ts: int
    af: int
    cf: int
    rtp: float
    sc: int
    sv: int

    def to_dict(self) -> Dict:
        return {
            'sid': self.sid,
            'ts': self.ts,
            'af': self.af,
            'cf': self.cf,
            'rtp': self.rtp,
            'sc': self.sc,
            'sv': self.sv,
        }
