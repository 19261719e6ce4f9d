from dataclasses import replace
from datetime import date, datetime

import pytest

from signal_backtest.backtest.simulator import (
    MIN_HISTORY_BARS,
    FundamentalTimeline,
    TradeSimulator,
    run_simulation,
    to_date,
)
from signal_backtest.core.entry_policy import EntryPolicy
from signal_backtest.core.types import ExitReason, FundamentalData, SignalType
from signal_backtest.signals.combiner import combine_signals
from signal_backtest.strategies import POLICY_REGISTRY
from signal_backtest.utils.config import RiskConfig, StrategyConfig

from conftest import buy_and_hold_strategy, make_frame, random_walk_closes, rising_closes


def test_to_date_accepts_strings_and_timestamps():
    import pandas as pd

    assert to_date("2024-03-01") == date(2024, 3, 1)
    assert to_date(pd.Timestamp("2024-03-01")) == date(2024, 3, 1)
    assert to_date(date(2024, 3, 1)) == date(2024, 3, 1)
    assert to_date(datetime(2024, 3, 1, 15, 30)) == date(2024, 3, 1)
    assert type(to_date(datetime(2024, 3, 1))) is date


def test_fundamental_timeline_uses_only_published_records():
    records = [
        FundamentalData(symbol="AAA", pe_ratio=30, report_date=date(2024, 5, 15)),
        FundamentalData(symbol="AAA", pe_ratio=20, report_date=date(2024, 2, 14)),
        FundamentalData(symbol="AAA", pe_ratio=99, report_date=None),
    ]
    timeline = FundamentalTimeline(records)
    assert len(timeline) == 2
    assert timeline.as_of(date(2024, 2, 13)) is None
    assert timeline.as_of(date(2024, 2, 14)).pe_ratio == 20
    assert timeline.as_of(date(2024, 5, 14)).pe_ratio == 20
    assert timeline.as_of(date(2024, 12, 31)).pe_ratio == 30


def test_buy_and_hold_rising_series_single_end_of_period_trade():
    frame = make_frame(rising_closes(60))
    dates = frame["date"].tolist()
    config = buy_and_hold_strategy(initial_capital=10_000)

    result = run_simulation(config, {"AAA": frame}, start_date=dates[25], end_date=dates[-1])

    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.exit_reason == ExitReason.END_OF_PERIOD
    assert trade.entry_date == dates[25]
    assert trade.exit_date == dates[-1]
    assert trade.entry_price == 125.0
    assert trade.quantity == 80                     # floor(10000 / 125)
    assert trade.pnl == pytest.approx(80 * (159.0 - 125.0))

    # 거래일마다 스냅샷 하나, 종료 시 보유 포지션 없음
    assert [s.date for s in result.equity_curve] == dates[25:]
    assert result.equity_curve[-1].open_position_count == 0
    assert result.equity_curve[-1].equity == pytest.approx(10_000 + trade.pnl)

    # 마지막 날을 제외한 평가일마다 시그널 기록
    assert len(result.signal_history["AAA"]) == len(dates[25:]) - 1


def test_no_entry_before_minimum_history():
    frame = make_frame(rising_closes(40))
    dates = frame["date"].tolist()
    result = run_simulation(buy_and_hold_strategy(), {"AAA": frame})
    assert result.trades[0].entry_date == dates[MIN_HISTORY_BARS - 1]
    assert result.equity_curve[0].date == dates[0]


def test_stop_loss_exit_blocks_same_day_reentry():
    closes = [100.0] * 30 + [90.0] * 10
    frame = make_frame(closes)
    dates = frame["date"].tolist()
    config = buy_and_hold_strategy(initial_capital=10_000, stop_loss=5)

    result = run_simulation(config, {"AAA": frame}, start_date=dates[25])

    assert [t.exit_reason for t in result.trades] == [ExitReason.STOP_LOSS, ExitReason.END_OF_PERIOD]
    first, second = result.trades
    assert first.exit_date == dates[30]
    assert first.pnl == pytest.approx(-1_000)
    assert second.entry_date == dates[31]
    assert second.quantity == 100                   # floor(9000 / 90)


def test_last_day_closes_symbol_without_quote_at_last_close():
    full = make_frame(rising_closes(50))
    short = make_frame(rising_closes(49, start=200))  # 마지막 거래일 시세 없음
    dates = full["date"].tolist()
    config = buy_and_hold_strategy(symbols=("AAA", "BBB"), initial_capital=20_000)

    result = run_simulation(config, {"AAA": full, "BBB": short}, start_date=dates[30])

    trades = {t.symbol: t for t in result.trades}
    assert set(trades) == {"AAA", "BBB"}
    assert trades["BBB"].exit_reason == ExitReason.END_OF_PERIOD
    assert trades["BBB"].exit_date == dates[-1]
    assert trades["BBB"].exit_price == 248.0
    assert result.equity_curve[-1].open_position_count == 0
    assert result.equity_curve[-1].positions_value == 0


def test_symbols_are_evaluated_in_config_order():
    frames = {s: make_frame(rising_closes(40)) for s in ("AAA", "BBB", "CCC")}
    config = StrategyConfig(
        symbols=["CCC", "AAA", "BBB"],
        initial_capital=10_000,
        entry_policy="buy_and_hold",
        risk=RiskConfig(take_profit_percent=None, stop_loss_percent=None,
                        max_position_size_percent=50, max_open_positions=2),
    )
    result = run_simulation(config, frames)
    assert sorted(t.symbol for t in result.trades) == ["AAA", "CCC"]


def test_empty_price_data_gives_empty_result():
    result = run_simulation(buy_and_hold_strategy(), {})
    assert result.trades == []
    assert result.equity_curve == []

    frame = make_frame(rising_closes(30))
    result = run_simulation(buy_and_hold_strategy(), {"AAA": frame}, start_date="2030-01-01")
    assert result.equity_curve == []


def test_signals_policy_run_is_consistent():
    frames = {
        "AAA": make_frame(random_walk_closes(320, seed=1)),
        "BBB": make_frame(random_walk_closes(320, seed=2)),
    }
    fundamentals = {
        "AAA": [FundamentalData(symbol="AAA", pe_ratio=20, eps=5, eps_growth=0.1, beta=1.0,
                                dividend_yield=0.01, market_cap=2e12, report_date=date(2023, 12, 1))],
    }
    config = StrategyConfig(symbols=["AAA", "BBB"], initial_capital=50_000)
    simulator = TradeSimulator(config)
    start = frames["AAA"]["date"].iloc[210]

    first = simulator.run(frames, fundamentals, start_date=start)
    second = simulator.run(frames, fundamentals, start_date=start)

    # 실행끼리 상태를 공유하지 않음
    assert [t.pnl for t in first.trades] == [t.pnl for t in second.trades]
    assert len(first.equity_curve) == len(frames["AAA"]) - 210
    assert first.equity_curve[-1].open_position_count == 0
    final_equity = first.equity_curve[-1].equity
    assert final_equity == pytest.approx(50_000 + sum(t.pnl for t in first.trades))
    for t in first.trades:
        assert t.holding_days >= 1
        assert t.entry_date >= start


def test_unknown_entry_policy_rejected():
    with pytest.raises(ValueError):
        TradeSimulator(StrategyConfig(entry_policy="nope"))


def test_datetime_bounds_select_same_days_as_dates():
    frame = make_frame(rising_closes(60))
    config = buy_and_hold_strategy()

    by_datetime = run_simulation(config, {"AAA": frame},
                                 start_date=datetime(2024, 2, 1), end_date=datetime(2024, 3, 20, 16, 0))
    by_date = run_simulation(config, {"AAA": frame}, start_date=date(2024, 2, 1), end_date=date(2024, 3, 20))

    assert [s.date for s in by_datetime.equity_curve] == [s.date for s in by_date.equity_curve]
    assert by_datetime.equity_curve[0].date == date(2024, 2, 1)
    assert by_datetime.equity_curve[-1].date == date(2024, 3, 20)


class PriceTriggerPolicy(EntryPolicy):
    """종가가 정해진 값이면 매수/매도, 그 외에는 관망."""

    buy_at = 125.0
    sell_at = 130.0

    def __init__(self):
        super().__init__(name="price_trigger")

    def decide(self, technical, fundamental, config):
        combined = combine_signals(technical, fundamental, config.weights)
        if technical.current_price == self.buy_at:
            action = SignalType.BUY
        elif technical.current_price == self.sell_at:
            action = SignalType.SELL
        else:
            action = SignalType.HOLD
        return replace(combined, action=action, vetoed=False, veto_reason=None)


def _single_slot_risk(take_profit=None):
    return RiskConfig(take_profit_percent=take_profit, stop_loss_percent=None,
                      max_position_size_percent=100, max_open_positions=1)


def test_sell_signal_closes_position(monkeypatch):
    monkeypatch.setitem(POLICY_REGISTRY, "price_trigger", PriceTriggerPolicy)
    frame = make_frame(rising_closes(40))
    dates = frame["date"].tolist()
    config = StrategyConfig(symbols=["AAA"], initial_capital=10_000,
                            entry_policy="price_trigger", risk=_single_slot_risk())

    result = run_simulation(config, {"AAA": frame})

    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.exit_reason == ExitReason.SIGNAL_SELL
    assert trade.entry_date == dates[25]
    assert trade.exit_date == dates[30]
    assert trade.quantity == 80                     # floor(10000 / 125)
    assert trade.pnl == pytest.approx(80 * 5.0)
    assert result.equity_curve[30].open_position_count == 0
    assert result.equity_curve[-1].equity == pytest.approx(10_400)


def test_take_profit_exit_reenters_next_day():
    frame = make_frame(rising_closes(40))
    dates = frame["date"].tolist()
    config = StrategyConfig(symbols=["AAA"], initial_capital=10_000,
                            entry_policy="buy_and_hold", risk=_single_slot_risk(take_profit=5))

    result = run_simulation(config, {"AAA": frame})

    # 119 → 125 (+5.04%), 126 → 133 (+5.56%), 134 → 139 기간 종료
    assert [t.exit_reason for t in result.trades] == [
        ExitReason.TAKE_PROFIT, ExitReason.TAKE_PROFIT, ExitReason.END_OF_PERIOD,
    ]
    assert [(t.entry_date, t.exit_date) for t in result.trades] == [
        (dates[19], dates[25]), (dates[26], dates[33]), (dates[34], dates[39]),
    ]
    for earlier, later in zip(result.trades, result.trades[1:]):
        assert later.entry_date > earlier.exit_date
