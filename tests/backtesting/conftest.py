"""
Shared test fixtures for backtesting tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from tradewise.backtesting import PerformanceAnalytics, build_equity_curve

# Per-bar returns; the first entry is the starting bar
BAR_RETURNS = [0.0, 0.02, 0.03, -0.01, 0.01, 0.04, -0.02, 0.02, 0.01, -0.03]


def make_trade(pl, side="SELL", exit_reason=None, holding_period=None, quantity=100):
    """Closing trade dict with a 1,000 position, so the percent P&L is pl / 10."""
    trade = {
        "symbol": "AAPL",
        "side": side,
        "quantity": quantity,
        "entryPrice": 10.0,
        "executedPrice": 10.0 + pl / quantity,
        "realizedPL": pl,
        "realizedPLPct": pl / 10,
        "executionBar": "2024-01-05T00:00:00Z",
    }
    if exit_reason is not None:
        trade["exitReason"] = exit_reason
    if holding_period is not None:
        trade["holdingPeriod"] = holding_period
    return trade


@pytest.fixture
def analytics():
    """Calculator with default settings."""
    return PerformanceAnalytics()


@pytest.fixture
def bar_timestamps():
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [start + timedelta(days=i) for i in range(len(BAR_RETURNS))]


@pytest.fixture
def sample_equity_curve(bar_timestamps):
    """Ten-bar curve compounding BAR_RETURNS from 10,000 in cash."""
    equity = 10_000.0
    snapshots = []
    for timestamp, ret in zip(bar_timestamps, BAR_RETURNS):
        equity *= 1 + ret
        snapshots.append((timestamp, equity, 0.0))
    return build_equity_curve(snapshots, initial_cash=10_000.0)


@pytest.fixture
def sample_trades():
    """Buy legs plus five closing trades: three winners, two losers."""
    return [
        {"symbol": "AAPL", "side": "BUY", "quantity": 100, "executedPrice": 10.0},
        make_trade(47.95, exit_reason="TAKE_PROFIT", holding_period=3),
        make_trade(97.90, exit_reason="TAKE_PROFIT", holding_period=5),
        {"symbol": "AAPL", "side": "BUY", "quantity": 100, "executedPrice": 10.0},
        make_trade(-31.97, exit_reason="STOP_LOSS", holding_period=2),
        make_trade(67.93, exit_reason="signal-exit", holding_period=4),
        make_trade(-21.98, exit_reason="STOP_LOSS", holding_period=1),
    ]


@pytest.fixture(name="make_trade")
def make_trade_fixture():
    """Factory for closing trade dicts."""
    return make_trade
