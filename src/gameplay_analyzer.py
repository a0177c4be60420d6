#!/usr/bin/env python3
"""
Gameplay Analyzer Service

Entry point used by the ingestion layer. Records spins into per-session
windows and runs the pump, win-clustering and RTP-drift detectors over a
snapshot of a session on demand, producing an AnalysisReport with a
combined risk score.

Missing sessions and too-small windows are normal states: they give None
(or {'ok': False}) rather than errors. Only configuration problems and
malformed spin data raise.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from analysis_history import AnalysisHistory
from analyzer_config import AnalyzerConfig
from mobile_encoder import MobileSummaryEncoder, get_mobile_poll_interval, parse_compressed_spins
from risk_manager import RiskScorer
from rtp_monitor import DriftDetector, PumpDetector
from session_store import Session, SessionStore, now_ms
from spin_models import (
    ANOMALY_CLUSTERING, ANOMALY_DRIFT, ANOMALY_PUMP, SEVERITY_CRITICAL,
    AnalysisReport, AnomalyResult, SpinResult, WindowSnapshot, session_key,
)
from streak_monitor import ClusterDetector

logger = logging.getLogger(__name__)

Publisher = Callable[[str, Dict[str, Any]], None]

EVENT_ANOMALY_DETECTED = 'gameplay.anomaly.detected'
ANOMALY_EVENTS = {
    ANOMALY_PUMP: 'fairness.pump.detected',
    ANOMALY_CLUSTERING: 'fairness.cluster.detected',
    ANOMALY_DRIFT: 'fairness.drift.detected',
}


class GameplayAnalyzer:
    """
    Detects RTP manipulation and suspicious win patterns per session.

    Args:
        config: AnalyzerConfig, or a mapping of overrides on the defaults
        publish: optional ``publish(event_name, payload)`` callable used when
            ``auto_publish`` is enabled
    """

    def __init__(self, config: Union[AnalyzerConfig, Mapping, None] = None,
                 publish: Optional[Publisher] = None):
        if isinstance(config, AnalyzerConfig):
            self._config = config
        else:
            self._config = AnalyzerConfig.from_dict(config)

        self.publish = publish
        self.store = SessionStore(window_size=self._config.window_size)
        self.history = AnalysisHistory(limit=self._config.history_limit)

        self.pump_detector = PumpDetector()
        self.cluster_detector = ClusterDetector()
        self.drift_detector = DriftDetector()
        self.risk_scorer = RiskScorer()
        self.mobile_encoder = MobileSummaryEncoder()

        self._config_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def record_spin(self, spin: SpinResult):
        """Record a spin into the session for (user_id, casino_id)."""
        session = self.store.get_or_create(spin)
        spins_seen = session.append(spin)
        self._maybe_auto_analyze(session, spins_seen)

    def record_spin_batch(self, spins: Iterable[SpinResult]):
        """Record spins in arrival order (mobile batch upload)."""
        for spin in spins:
            self.record_spin(spin)

    def record_compressed_spins(self, compressed: str, user_id: str, casino_id: str,
                                game_id: str) -> int:
        """Parse a compressed upload and record it; returns the spin count."""
        spins = self.parse_compressed_spins(compressed, user_id, casino_id, game_id)
        self.record_spin_batch(spins)
        return len(spins)

    def _maybe_auto_analyze(self, session: Session, spins_seen: int):
        # window_size >= min_spins_required, so spins_seen also gates the window length
        config = self._config
        if not config.auto_analyze:
            return

        if config.mobile_optimized:
            if spins_seen % config.mobile_batch_size == 0:
                self.analyze_session(session.key)
        elif spins_seen >= config.min_spins_required:
            self.analyze_session(session.key)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def run_detectors(self, snapshot: WindowSnapshot,
                      config: Optional[AnalyzerConfig] = None
                      ) -> Tuple[AnomalyResult, AnomalyResult, AnomalyResult]:
        """Run the three detectors over one snapshot (no side effects)."""
        config = config or self._config
        return (
            self.pump_detector.evaluate(snapshot, config),
            self.cluster_detector.evaluate(snapshot, config),
            self.drift_detector.evaluate(snapshot, config),
        )

    def analyze_session(self, key: str) -> Optional[AnalysisReport]:
        """
        Analyze the current window of a session.

        Returns None when the session is unknown or holds fewer than
        ``min_spins_required`` spins. Every non-None report is appended to
        the user's history.
        """
        config = self._config
        session = self.store.get_session(key)
        if session is None:
            return None

        snapshot = session.snapshot()
        if len(snapshot) < config.min_spins_required:
            logger.debug(f"Session {key} has {len(snapshot)} spins; "
                         f"{config.min_spins_required} required for analysis")
            return None

        pump, cluster, drift = self.run_detectors(snapshot, config)
        risk_score, risk_level = self.risk_scorer.score(pump, cluster, drift, config)
        recommendations = self.risk_scorer.recommend(pump, cluster, drift, risk_score)

        report = AnalysisReport(
            user_id=session.user_id,
            casino_id=session.casino_id,
            session_id=session.session_id,
            window=snapshot.stats,
            pump_analysis=pump,
            cluster_analysis=cluster,
            drift_analysis=drift,
            overall_risk_score=risk_score,
            risk_level=risk_level,
            recommendations=tuple(recommendations),
            generated_at=now_ms(),
        )

        self.history.append(report)

        for analysis in report.detected_anomalies:
            if analysis.severity == SEVERITY_CRITICAL:
                logger.warning(f"Critical {analysis.anomaly_type} for {key}: {analysis.reason}")
        logger.debug(f"Analyzed {key}: risk={risk_score} ({risk_level}), "
                     f"rtp={report.window.observed_rtp:.3f}, spins={len(snapshot)}")

        if config.auto_publish:
            self._publish_report(report)

        return report

    def end_session(self, key: str) -> Optional[AnalysisReport]:
        """Mark a session inactive and return its final analysis."""
        if not self.store.deactivate(key):
            return None
        return self.analyze_session(key)

    def reactivate_session(self, key: str) -> bool:
        return self.store.reactivate(key)

    def _publish_report(self, report: AnalysisReport):
        if self.publish is None:
            return

        detected = report.detected_anomalies
        for analysis in detected:
            self._safe_publish(ANOMALY_EVENTS[analysis.anomaly_type],
                               self._anomaly_event(report, analysis))

        if detected:
            self._safe_publish(EVENT_ANOMALY_DETECTED, {
                'user_id': report.user_id,
                'casino_id': report.casino_id,
                'session_id': report.session_id,
                'overall_risk_score': report.overall_risk_score,
                'risk_level': report.risk_level,
                'anomalies': [a.anomaly_type for a in detected],
                'recommendations': list(report.recommendations),
                'timestamp': report.generated_at,
            })

    def _safe_publish(self, event_name: str, payload: Dict[str, Any]):
        try:
            self.publish(event_name, payload)
        except Exception as e:
            logger.warning(f"Failed to publish {event_name}: {e}")

    @staticmethod
    def _anomaly_event(report: AnalysisReport, analysis: AnomalyResult) -> Dict[str, Any]:
        return {
            'user_id': report.user_id,
            'casino_id': report.casino_id,
            'session_id': report.session_id,
            'anomaly_type': analysis.anomaly_type,
            'severity': analysis.severity,
            'confidence': analysis.confidence,
            'metadata': analysis.to_dict()['metadata'],
            'reason': analysis.reason,
            'timestamp': report.generated_at,
        }

    # ------------------------------------------------------------------
    # Mobile
    # ------------------------------------------------------------------

    def get_mobile_summary(self, key: str):
        """Compact summary of a session, or None when the session is unknown."""
        session = self.store.get_session(key)
        if session is None:
            return None

        snapshot = session.snapshot()
        pump, cluster, drift = self.run_detectors(snapshot)
        return self.mobile_encoder.summarize(session.session_id, snapshot,
                                             pump, cluster, drift, now_ms())

    def get_minimal_payload(self, key: str) -> Dict[str, Any]:
        summary = self.get_mobile_summary(key)
        if summary is None:
            return {'ok': False}
        return {'ok': True, 'data': summary.to_dict()}

    @staticmethod
    def parse_compressed_spins(compressed: str, user_id: str, casino_id: str,
                               game_id: str) -> List[SpinResult]:
        return parse_compressed_spins(compressed, user_id, casino_id, game_id)

    @staticmethod
    def get_mobile_poll_interval(battery_percent: Optional[float] = None,
                                 is_charging: bool = False) -> int:
        return get_mobile_poll_interval(battery_percent, is_charging)

    # ------------------------------------------------------------------
    # Sessions & history
    # ------------------------------------------------------------------

    @staticmethod
    def session_key(user_id: str, casino_id: str) -> str:
        return session_key(user_id, casino_id)

    def get_session(self, key: str) -> Optional[Session]:
        return self.store.get_session(key)

    def get_history(self, user_id: str) -> List[AnalysisReport]:
        return self.history.get(user_id)

    def clear_session(self, key: str) -> bool:
        return self.store.clear_session(key)

    def clear_all(self):
        """Drop every session and all report history."""
        self.store.clear_all()
        self.history.clear()

    def get_session_count(self) -> int:
        return self.store.get_session_count()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self) -> AnalyzerConfig:
        return self._config

    def update_config(self, changes: Optional[Mapping] = None, **kwargs) -> AnalyzerConfig:
        """Validate and atomically swap in an updated config."""
        merged = dict(changes or {})
        merged.update(kwargs)

        with self._config_lock:
            previous = self._config
            config = previous.updated(merged)
            self._config = config

            if config.window_size != previous.window_size:
                self.store.resize_windows(config.window_size)
            if config.history_limit != previous.history_limit:
                self.history.set_limit(config.history_limit)

        if merged:
            logger.info(f"Analyzer config updated: {sorted(merged)}")
        return config

    def enable_mobile_mode(self):
        self.update_config(mobile_optimized=True)

    def disable_mobile_mode(self):
        self.update_config(mobile_optimized=False)

    def set_game_baseline(self, game_id: str, baseline: float):
        self.update_config(baselines_by_game={game_id: baseline})

    def get_game_baseline(self, game_id: str) -> float:
        return self._config.baseline_for_game(game_id)
