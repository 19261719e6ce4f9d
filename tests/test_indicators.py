import math

from signal_backtest.indicators.rsi import calculate_rsi, calculate_rsi_series
from signal_backtest.indicators.sma import calculate_sma, calculate_sma_series

from conftest import random_walk_closes, rising_closes


def test_sma_last_window_mean():
    assert calculate_sma([1, 2, 3, 4, 5], 3) == 4.0
    assert calculate_sma([2, 4], 2) == 3.0


def test_sma_insufficient_data_is_nan():
    assert math.isnan(calculate_sma([1, 2], 3))
    assert math.isnan(calculate_sma([], 1))


def test_sma_series_matches_point_values():
    prices = [1, 2, 3, 4, 5]
    series = calculate_sma_series(prices, 3)
    assert list(series.index) == [2, 3, 4]
    assert list(series.values) == [2.0, 3.0, 4.0]
    assert calculate_sma_series([1, 2], 3).empty


def test_rsi_monotonic_series_extremes():
    assert calculate_rsi(rising_closes(30), 14) == 100.0
    assert calculate_rsi(list(reversed(rising_closes(30))), 14) == 0.0


def test_rsi_needs_period_plus_one_prices():
    assert math.isnan(calculate_rsi(rising_closes(14), 14))
    assert not math.isnan(calculate_rsi(rising_closes(15), 14))


def test_rsi_wilder_smoothing_known_value():
    # period=1: 마지막 변화만 반영 (하락) → 0
    prices = [10, 11, 9]
    assert abs(calculate_rsi(prices, 1) - 0.0) < 1e-9
    prices = [10, 11, 12, 10]
    # period=2: 초기 avg_gain=1, avg_loss=0 → 다음 -2: gain=0.5, loss=1.0 → RS=0.5
    assert abs(calculate_rsi(prices, 2) - (100 - 100 / 1.5)) < 1e-9


def test_rsi_series_bounded_and_consistent():
    prices = random_walk_closes(120)
    series = calculate_rsi_series(prices, 14)
    assert len(series) == len(prices) - 14
    assert series.between(0, 100).all()
    assert abs(series.iloc[-1] - calculate_rsi(prices, 14)) < 1e-9


def test_rsi_alternating_series_is_neutral():
    closes = [100.0, 101.0] * 20
    assert abs(calculate_rsi(closes, 14) - 50) < 5
    assert abs(calculate_rsi_series(closes, 14).iloc[-1] - 50) < 5
