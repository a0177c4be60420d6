#!/usr/bin/env python3
"""
Tests for Mobile Delivery Helpers
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from mobile_encoder import (
    MobileSummaryEncoder, encode_compressed_spins, get_mobile_poll_interval, parse_compressed_spins,
)
from spin_models import AnomalyResult, InvalidSpinError, SpinResult, WindowSnapshot


class TestParseCompressedSpins:
    """Test the wager|payout|timestamp upload format."""

    def test_parse_basic(self):
        spins = parse_compressed_spins('10|15|1000;10|0|2000;10|25|3000', 'u1', 'c1', 'g1')

        assert len(spins) == 3
        assert [s.payout for s in spins] == [15, 0, 25]
        assert [s.timestamp for s in spins] == [1000, 2000, 3000]
        assert spins[0].spin_id == 'u1-1000-0'
        assert spins[2].key == 'u1:c1'
        assert spins[1].game_id == 'g1'

    def test_fractional_amounts(self):
        spins = parse_compressed_spins('0.5|1.25|1000', 'u1', 'c1', 'g1')

        assert spins[0].wager == 0.5
        assert spins[0].payout == 1.25

    @pytest.mark.parametrize('compressed', ['', '   ', None])
    def test_empty_input(self, compressed):
        assert parse_compressed_spins(compressed, 'u1', 'c1', 'g1') == []

    def test_trailing_separator_skipped(self):
        spins = parse_compressed_spins('10|15|1000;', 'u1', 'c1', 'g1')
        assert len(spins) == 1

    @pytest.mark.parametrize('compressed', [
        '10|15',
        '10|15|1000|extra',
        'ten|15|1000',
        '10|-5|1000',
        '10|15|abc',
        '10|15|1000.5',
        '10|nan|1000',
    ])
    def test_malformed_rejected(self, compressed):
        with pytest.raises(InvalidSpinError):
            parse_compressed_spins(compressed, 'u1', 'c1', 'g1')

    def test_one_bad_entry_rejects_upload(self):
        with pytest.raises(InvalidSpinError):
            parse_compressed_spins('10|15|1000;10|x|2000', 'u1', 'c1', 'g1')

    def test_encode_matches_parse_format(self):
        text = '10|15|1000;0.5|0|2000'
        spins = parse_compressed_spins(text, 'u1', 'c1', 'g1')

        assert encode_compressed_spins(spins) == text


class TestMobileSummaryEncoder:
    """Test the short-key summary."""

    @pytest.fixture
    def snapshot(self):
        return WindowSnapshot(tuple(
            SpinResult(f"s{i}", 'u1', 'c1', 'g1', 10, 12 if i % 2 else 0, 1000 + i)
            for i in range(20)
        ))

    def test_flags_and_severity(self, snapshot):
        pump = AnomalyResult('rtp_pump', True, 'warning', 0.42)
        cluster = AnomalyResult('win_clustering')
        drift = AnomalyResult('rtp_drift', True, 'critical', 0.87)

        summary = MobileSummaryEncoder().summarize('sess-1', snapshot, pump, cluster, drift, 5000)

        assert summary.af == 5
        assert summary.sv == 2
        assert summary.cf == 87
        assert summary.rtp == 60.0
        assert summary.sc == 20
        assert summary.to_dict() == {
            'sid': 'sess-1', 'ts': 5000, 'af': 5, 'cf': 87, 'rtp': 60.0, 'sc': 20, 'sv': 2,
        }

    def test_no_anomalies(self, snapshot):
        none = [AnomalyResult(t) for t in ('rtp_pump', 'win_clustering', 'rtp_drift')]
        summary = MobileSummaryEncoder().summarize('sess-1', snapshot, *none, timestamp=5000)

        assert summary.af == 0
        assert summary.sv == 0
        assert summary.cf == 0

    def test_all_flags(self):
        detected = [AnomalyResult(t, True, 'warning') for t in ('rtp_pump', 'win_clustering', 'rtp_drift')]
        assert MobileSummaryEncoder.anomaly_flags(*detected) == 7

    def test_confidence_ignores_undetected_results(self, snapshot):
        pump = AnomalyResult('rtp_pump', False, 'none', 0.6)
        cluster = AnomalyResult('win_clustering', False, 'none', 0.9)
        drift = AnomalyResult('rtp_drift', True, 'warning', 0.3)

        summary = MobileSummaryEncoder().summarize('sess-1', snapshot, pump, cluster, drift, 5000)

        assert summary.af == 4
        assert summary.cf == 30


class TestPollInterval:
    """Test battery-aware polling."""

    @pytest.mark.parametrize('battery,charging,expected', [
        (None, False, 30000),
        (80, False, 30000),
        (50, False, 30000),
        (49, False, 60000),
        (20, False, 60000),
        (19, False, 120000),
        (5, True, 30000),
    ])
    def test_intervals(self, battery, charging, expected):
        assert get_mobile_poll_interval(battery, charging) == expected


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
