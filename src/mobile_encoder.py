#!/usr/bin/env python3
"""
Mobile Delivery Helpers

Compact summaries for bandwidth-constrained clients, the compressed spin
upload format and the battery-aware poll interval.

Compressed spins: ``wager|payout|timestamp`` triples joined by ``;``
e.g. ``10|15|1000;10|0|2000;10|25|3000``
"""

import logging
import math
from typing import List, Optional

from spin_models import (
    SEVERITY_RANK,
    AnomalyResult, InvalidSpinError, MobileAnomalySummary, SpinResult, WindowSnapshot,
)

logger = logging.getLogger(__name__)

FLAG_PUMP = 1
FLAG_CLUSTERING = 2
FLAG_DRIFT = 4

POLL_INTERVAL_DEFAULT_MS = 30000
POLL_INTERVAL_MEDIUM_BATTERY_MS = 60000
POLL_INTERVAL_LOW_BATTERY_MS = 120000
LOW_BATTERY_PERCENT = 20
MEDIUM_BATTERY_PERCENT = 50


class MobileSummaryEncoder:
    """
    Projects detector results onto the fixed short-key mobile structure.

    ``cf`` is the strongest confidence among detected anomalies, so a clean
    session always reports 0.
    """

    def summarize(self, session_id: str, snapshot: WindowSnapshot,
                  pump: AnomalyResult, cluster: AnomalyResult, drift: AnomalyResult,
                  timestamp: int) -> MobileAnomalySummary:
        window = snapshot.stats
        analyses = (pump, cluster, drift)

        return MobileAnomalySummary(
            sid=session_id,
            ts=timestamp,
            af=self.anomaly_flags(pump, cluster, drift),
            cf=int(round(max((a.confidence for a in analyses if a.detected), default=0.0) * 100)),
            rtp=round(window.observed_rtp * 100, 1),
            sc=window.spin_count,
            sv=max(SEVERITY_RANK[a.severity] for a in analyses),
        )

    @staticmethod
    def anomaly_flags(pump: AnomalyResult, cluster: AnomalyResult, drift: AnomalyResult) -> int:
        flags = 0
        if pump.detected:
            flags |= FLAG_PUMP
        if cluster.detected:
            flags |= FLAG_CLUSTERING
        if drift.detected:
            flags |= FLAG_DRIFT
        return flags


def _parse_amount(raw: str, name: str, index: int) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise InvalidSpinError(f"Spin {index}: {name} {raw!r} is not a number")
    if not math.isfinite(value) or value < 0:
        raise InvalidSpinError(f"Spin {index}: {name} must be a finite number >= 0, got {raw!r}")
    return int(value) if value.is_integer() else value


def parse_compressed_spins(compressed: Optional[str], user_id: str, casino_id: str,
                           game_id: str) -> List[SpinResult]:
    """
    Parse a compressed upload into spins.

    Empty input gives ``[]``; blank segments (e.g. a trailing ``;``) are
    skipped. Any malformed segment rejects the whole upload with
    InvalidSpinError rather than guessing a value.
    """
    if not compressed or not compressed.strip():
        return []

    spins = []
    for index, entry in enumerate(compressed.split(';')):
        entry = entry.strip()
        if not entry:
            continue

        parts = entry.split('|')
        if len(parts) != 3:
            raise InvalidSpinError(f"Spin {index}: expected wager|payout|timestamp, got {entry!r}")

        wager = _parse_amount(parts[0].strip(), 'wager', index)
        payout = _parse_amount(parts[1].strip(), 'payout', index)

        raw_ts = parts[2].strip()
        try:
            timestamp = int(raw_ts)
        except ValueError:
            raise InvalidSpinError(f"Spin {index}: timestamp {raw_ts!r} is not integer milliseconds")

        spins.append(SpinResult(
            spin_id=f"{user_id}-{timestamp}-{index}",
            user_id=user_id,
            casino_id=casino_id,
            game_id=game_id,
            wager=wager,
            payout=payout,
            timestamp=timestamp,
        ))

    return spins


def encode_compressed_spins(spins) -> str:
    """Inverse of parse_compressed_spins (identity fields are not carried)."""
    return ';'.join(f"{_fmt(s.wager)}|{_fmt(s.payout)}|{s.timestamp}" for s in spins)


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def get_mobile_poll_interval(battery_percent: Optional[float] = None,
                             is_charging: bool = False) -> int:
    """Poll interval in ms; charging always gets the base interval."""
    if is_charging or battery_percent is None:
        return POLL_INTERVAL_DEFAULT_MS
    if battery_percent < LOW_BATTERY_PERCENT:
        return POLL_INTERVAL_LOW_BATTERY_MS
    if battery_percent < MEDIUM_BATTERY_PERCENT:
        return POLL_INTERVAL_MEDIUM_BATTERY_MS
    return POLL_INTERVAL_DEFAULT_MS
