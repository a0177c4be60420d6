#!/usr/bin/env python3
"""
Tests for Spin & Report Data Model
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from spin_models import (
    InvalidSpinError, RTPStats, SpinResult, WindowSnapshot, session_key,
)


def make_spin(i, wager=10.0, payout=0.0, game_id='test-slot'):
    return SpinResult(
        spin_id=f"spin-{i}",
        user_id='test-user',
        casino_id='test-casino',
        game_id=game_id,
        wager=wager,
        payout=payout,
        timestamp=1000 + i * 1000,
    )


class TestSpinResult:
    """Test spin validation at construction."""

    def test_valid_spin(self):
        spin = make_spin(0, wager=10, payout=15)

        assert spin.key == 'test-user:test-casino'
        assert spin.is_win
        assert spin.timestamp == 1000

    def test_zero_payout_is_loss(self):
        assert not make_spin(0, payout=0).is_win

    def test_negative_wager_rejected(self):
        with pytest.raises(InvalidSpinError):
            make_spin(0, wager=-1)

    def test_negative_payout_rejected(self):
        with pytest.raises(InvalidSpinError):
            make_spin(0, payout=-5)

    def test_non_numeric_amount_rejected(self):
        with pytest.raises(InvalidSpinError):
            make_spin(0, wager='10')

    def test_nan_rejected(self):
        with pytest.raises(InvalidSpinError):
            make_spin(0, payout=float('nan'))

    def test_integral_float_timestamp_normalized(self):
        spin = SpinResult('s', 'u', 'c', 'g', 1, 0, 2000.0)
        assert spin.timestamp == 2000
        assert isinstance(spin.timestamp, int)

    def test_fractional_timestamp_rejected(self):
        with pytest.raises(InvalidSpinError):
            SpinResult('s', 'u', 'c', 'g', 1, 0, 2000.5)

    def test_invalid_spin_error_is_value_error(self):
        assert issubclass(InvalidSpinError, ValueError)

    def test_to_dict(self):
        data = make_spin(0, wager=10, payout=15).to_dict()

        assert data['spin_id'] == 'spin-0'
        assert data['payout'] == 15
        assert data['is_bonus'] is False

    def test_session_key_format(self):
        assert session_key('alice', 'stake') == 'alice:stake'


class TestRTPStats:
    """Test window aggregates."""

    def test_empty_window(self):
        stats = RTPStats.from_spins(())

        assert stats.observed_rtp == 0
        assert stats.spin_count == 0

    def test_rtp_is_payout_over_wager(self):
        spins = [make_spin(0, 10, 15), make_spin(1, 10, 0), make_spin(2, 20, 25)]
        stats = RTPStats.from_spins(spins)

        assert stats.total_wagers == 40
        assert stats.total_payouts == 40
        assert stats.observed_rtp == pytest.approx(1.0)
        assert stats.window_start == 1000
        assert stats.window_end == 3000

    def test_zero_wagers_give_zero_rtp(self):
        spins = [make_spin(0, wager=0, payout=5)]
        assert RTPStats.from_spins(spins).observed_rtp == 0

    def test_game_wagers_tracked(self):
        spins = [make_spin(0, 10, game_id='a'), make_spin(1, 5, game_id='b'), make_spin(2, 10, game_id='a')]
        stats = RTPStats.from_spins(spins)

        assert stats.game_wagers == {'a': 20, 'b': 5}


class TestWindowSnapshot:
    """Test snapshot helpers."""

    def test_split_halves_chronological(self):
        snapshot = WindowSnapshot(tuple(make_spin(i) for i in range(5)))
        first, second = snapshot.split_halves()

        assert [s.spin_id for s in first.spins] == ['spin-0', 'spin-1']
        assert [s.spin_id for s in second.spins] == ['spin-2', 'spin-3', 'spin-4']

    def test_win_flags(self):
        snapshot = WindowSnapshot((make_spin(0, payout=1), make_spin(1), make_spin(2, payout=3)))
        assert snapshot.win_flags.tolist() == [True, False, True]


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
