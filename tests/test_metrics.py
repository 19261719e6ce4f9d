import math

import numpy as np
import pytest

from signal_backtest.backtest.metrics import (
    TRADING_DAYS_PER_YEAR,
    calculate_max_drawdown,
    calculate_metrics,
    calculate_sharpe_ratio,
)

from conftest import make_curve, make_trade


def test_no_trades_no_curve():
    metrics = calculate_metrics([], [], 10_000)
    assert metrics.total_return == 0
    assert metrics.final_capital == 10_000
    assert metrics.sharpe_ratio == 0
    assert metrics.max_drawdown == 0
    assert metrics.total_trades == 0
    assert metrics.profit_factor == 0


def test_flat_curve_has_zero_sharpe_and_drawdown():
    curve = make_curve([10_000] * 30)
    assert calculate_sharpe_ratio(curve) == 0.0
    assert calculate_max_drawdown(curve) == (0.0, 0.0)


def test_max_drawdown_is_negative_peak_to_trough():
    curve = make_curve([100, 120, 90, 130, 125])
    dd_percent, dd_dollar = calculate_max_drawdown(curve)
    assert dd_percent == pytest.approx(-25.0)
    assert dd_dollar == pytest.approx(-30.0)


def test_sharpe_matches_population_std_formula():
    equities = [100, 101, 100.5, 102, 101.7, 103]
    curve = make_curve(equities)
    returns = np.diff(equities) / np.array(equities[:-1])
    expected = (returns.mean() - 0.05 / 252) / returns.std(ddof=0) * math.sqrt(252)
    assert calculate_sharpe_ratio(curve, 0.05) == pytest.approx(expected)
    assert calculate_sharpe_ratio(make_curve([100])) == 0.0


def test_trade_statistics():
    trades = [
        make_trade(pnl=500, pnl_percent=5.0, holding_days=4),
        make_trade(pnl=300, pnl_percent=3.0, holding_days=6),
        make_trade(pnl=-200, pnl_percent=-2.0, holding_days=2),
        make_trade(pnl=0, pnl_percent=0.0, holding_days=1),
        make_trade(pnl=400, pnl_percent=4.0, holding_days=7),
    ]
    curve = make_curve([10_000, 10_300, 10_100, 10_500, 11_000])
    metrics = calculate_metrics(trades, curve, 10_000)

    assert metrics.total_trades == 5
    assert metrics.winning_trades == 3
    assert metrics.losing_trades == 2             # pnl == 0 은 손실로 분류
    assert metrics.win_rate == pytest.approx(60.0)
    assert metrics.avg_win_percent == pytest.approx(4.0)
    assert metrics.avg_loss_percent == pytest.approx(-1.0)
    assert metrics.profit_factor == pytest.approx(1200 / 200)
    assert metrics.avg_holding_days == pytest.approx(4.0)
    assert metrics.best_trade == 5.0
    assert metrics.worst_trade == -2.0
    assert metrics.max_consecutive_wins == 2
    assert metrics.max_consecutive_losses == 2
    assert metrics.total_return == pytest.approx(10.0)
    assert metrics.total_return_dollar == pytest.approx(1_000)
    assert metrics.final_capital == 11_000


def test_profit_factor_infinite_without_losses():
    trades = [make_trade(pnl=100, pnl_percent=1.0), make_trade(pnl=50, pnl_percent=0.5)]
    metrics = calculate_metrics(trades, make_curve([10_000, 10_150]), 10_000)
    assert math.isinf(metrics.profit_factor)
    assert "∞" in metrics.summary()


def test_annualized_return_uses_trading_days():
    equities = list(np.linspace(10_000, 11_000, TRADING_DAYS_PER_YEAR))
    metrics = calculate_metrics([], make_curve(equities), 10_000)
    # 정확히 1년 → 연환산 = 총 수익률
    assert metrics.annualized_return == pytest.approx(metrics.total_return)


def test_to_dict_contains_all_fields():
    metrics = calculate_metrics([], make_curve([10_000, 10_100]), 10_000)
    data = metrics.to_dict()
    assert data["initial_capital"] == 10_000
    assert "max_consecutive_losses" in data
