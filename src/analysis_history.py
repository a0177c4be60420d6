#!/usr/bin/env python3
"""
Analysis History

Append-only per-user log of analysis reports, with a per-user retention
limit. Reports are immutable, so readers get plain copies of the log.
"""

import logging
import threading
from collections import deque
from typing import Deque, Dict, List, Optional

import pandas as pd

from spin_models import AnalysisReport

logger = logging.getLogger(__name__)


class AnalysisHistory:

    def __init__(self, limit: int = 50):
        self.limit = limit
        self._reports: Dict[str, Deque[AnalysisReport]] = {}
        self._lock = threading.Lock()

    def append(self, report: AnalysisReport):
        with self._lock:
            log = self._reports.get(report.user_id)
            if log is None:
                log = deque(maxlen=self.limit)
                self._reports[report.user_id] = log
            log.append(report)

    def get(self, user_id: str) -> List[AnalysisReport]:
        """Reports for a user, oldest first."""
        with self._lock:
            return list(self._reports.get(user_id, ()))

    def latest(self, user_id: str) -> Optional[AnalysisReport]:
        with self._lock:
            log = self._reports.get(user_id)
            return log[-1] if log else None

    def count(self, user_id: str) -> int:
        with self._lock:
            return len(self._reports.get(user_id, ()))

    def set_limit(self, limit: int):
        with self._lock:
            self.limit = limit
            for user_id, log in self._reports.items():
                self._reports[user_id] = deque(log, maxlen=limit)

    def clear(self):
        with self._lock:
            self._reports.clear()

    def to_dataframe(self, user_id: str) -> pd.DataFrame:
        """One row per report, for offline review of a user's sessions."""
        reports = self.get(user_id)
        if not reports:
            return pd.DataFrame()

        return pd.DataFrame([{
            'generated_at': pd.to_datetime(r.generated_at, unit='ms'),
            'casino_id': r.casino_id,
            'session_id': r.session_id,
            'observed_rtp': r.window.observed_rtp,
            'spin_count': r.window.spin_count,
            'risk_score': r.overall_risk_score,
            'risk_level': r.risk_level,
            'pump': r.pump_analysis.severity,
            'clustering': r.cluster_analysis.severity,
            'drift': r.drift_analysis.severity,
        } for r in reports])
