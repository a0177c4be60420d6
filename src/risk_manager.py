#!/usr/bin/env python3
"""
Risk Scoring & Recommendations

Combines the pump, clustering and drift results into one 0-100 risk score
and a list of plain-language recommendations for the player.

This is NOT a verdict on the casino - it is a probabilistic warning signal.
"""

import logging
from typing import List, Tuple

from analyzer_config import AnalyzerConfig
from spin_models import (
    ANOMALY_CLUSTERING, ANOMALY_DRIFT, ANOMALY_PUMP,
    SEVERITY_CRITICAL, SEVERITY_WARNING,
    AnomalyResult,
)

logger = logging.getLogger(__name__)

RISK_LOW = 'low'
RISK_ELEVATED = 'elevated'
RISK_HIGH = 'high'

ELEVATED_SCORE = 40
HIGH_SCORE = 70

MONITORING_RECOMMENDATION = 'No significant anomalies detected - gameplay appears fair. Continue monitoring.'

_RECOMMENDATIONS = {
    (ANOMALY_PUMP, SEVERITY_CRITICAL):
        'High RTP detected - may be an intentional pump to encourage larger bets. Consider reducing bet sizes.',
    (ANOMALY_PUMP, SEVERITY_WARNING):
        'RTP above normal - enjoy the wins but stay cautious.',
    (ANOMALY_CLUSTERING, SEVERITY_CRITICAL):
        'Unusual win clustering detected - patterns may not continue. Set a stop-win limit.',
    (ANOMALY_CLUSTERING, SEVERITY_WARNING):
        'Some win clustering observed - maintain bankroll discipline.',
    (ANOMALY_DRIFT, SEVERITY_CRITICAL):
        'RTP climbed sharply during this session - returns may be tuned to keep you playing. Consider stopping.',
    (ANOMALY_DRIFT, SEVERITY_WARNING):
        'RTP trending upward during this session - monitor closely.',
}


class RiskScorer:
    """
    Weighted sum of detector severities, capped at 100.

    score = sum(weight[type] * factor[severity]), with the weights and
    severity factors taken from the analyzer config.
    """

    def score(self, pump: AnomalyResult, cluster: AnomalyResult, drift: AnomalyResult,
              config: AnalyzerConfig) -> Tuple[int, str]:
        total = 0.0
        for analysis in (pump, cluster, drift):
            weight = config.risk_weights.get(analysis.anomaly_type, 0.0)
            total += weight * config.severity_factors[analysis.severity]

        risk_score = int(round(min(100.0, max(0.0, total))))
        return risk_score, self.risk_level(risk_score)

    @staticmethod
    def risk_level(risk_score: int) -> str:
        if risk_score >= HIGH_SCORE:
            return RISK_HIGH
        elif risk_score >= ELEVATED_SCORE:
            return RISK_ELEVATED
        return RISK_LOW

    def recommend(self, pump: AnomalyResult, cluster: AnomalyResult, drift: AnomalyResult,
                  risk_score: int) -> List[str]:
        """At least one line per detected anomaly; never empty."""
        recommendations = []

        for analysis in (pump, cluster, drift):
            if not analysis.detected:
                continue
            text = _RECOMMENDATIONS.get((analysis.anomaly_type, analysis.severity))
            if text is None:
                text = f"Anomaly detected ({analysis.anomaly_type}): {analysis.reason}"
            recommendations.append(text)

        level = self.risk_level(risk_score)
        if level == RISK_HIGH:
            recommendations.append('Overall risk is HIGH - strongly consider taking a break.')
        elif level == RISK_ELEVATED:
            recommendations.append('Moderate anomalies detected - exercise extra caution.')

        if not recommendations:
            recommendations.append(MONITORING_RECOMMENDATION)

        return recommendations
