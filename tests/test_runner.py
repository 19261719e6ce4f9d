from datetime import date

import pytest

from signal_backtest.backtest.runner import (
    BENCHMARK_LABEL,
    BacktestRunner,
    ComparisonEntry,
    buy_and_hold_config,
)
from signal_backtest.core.types import ExitReason, ProgressPhase
from signal_backtest.data.frame_provider import FrameDataProvider
from signal_backtest.data.fundamental_data import FundamentalDataService
from signal_backtest.data.historical_data import HistoricalDataService
from signal_backtest.utils.config import BacktestConfig, StrategyConfig

from conftest import make_frame, random_walk_closes, rising_closes

START = date(2024, 1, 2)
END = date(2024, 3, 29)


class RecordingProvider(FrameDataProvider):
    def __init__(self):
        super().__init__()
        self.requests = []

    def fetch_bars(self, symbol, start_date, end_date, timeframe="1Day"):
        self.requests.append((symbol, start_date, end_date))
        return super().fetch_bars(symbol, start_date, end_date, timeframe)


@pytest.fixture
def provider():
    provider = RecordingProvider()
    provider.load_data("AAA", make_frame(rising_closes(150), start=date(2023, 10, 2)))
    provider.load_data("BBB", make_frame(random_walk_closes(150, seed=3), start=date(2023, 10, 2)))
    return provider


@pytest.fixture
def runner(provider):
    return BacktestRunner(
        HistoricalDataService(provider),
        FundamentalDataService(provider),
        BacktestConfig(warmup_months=2),
    )


def test_run_backtest_fetches_warmup_and_reports_progress(runner, provider, default_strategy):
    phases = []
    output = runner.run_backtest(default_strategy, START, END, on_progress=lambda p: phases.append(p.phase))

    assert provider.requests[0] == ("AAA", date(2023, 11, 2), END)
    assert phases[0] == ProgressPhase.FETCHING_PRICES
    assert phases[-1] == ProgressPhase.COMPLETE
    assert set(phases) == set(ProgressPhase)

    assert output.start_date == START
    assert output.end_date == END
    assert output.equity_curve[0].date == START
    assert output.equity_curve[-1].date <= END
    assert output.run_timestamp
    assert len(output.attribution) == 2
    assert set(output.signal_history) == {"AAA", "BBB"}


def test_failing_progress_callback_is_ignored(runner, default_strategy):
    def explode(progress):
        raise RuntimeError("ui closed")

    output = runner.run_backtest(default_strategy, "2024-01-02", "2024-03-29", on_progress=explode)
    assert output.metrics is not None


def test_invalid_config_raises_before_fetching(runner, provider):
    with pytest.raises(ValueError):
        runner.run_backtest(StrategyConfig(symbols=[]), START, END)
    assert provider.requests == []


def test_comparison_appends_buy_and_hold(runner, default_strategy):
    tight = StrategyConfig.from_dict({"name": "Tight", "symbols": ["AAA", "BBB"], "risk": {"stop_loss_percent": 2}})
    results = runner.run_comparison(
        [ComparisonEntry("Default", default_strategy), ComparisonEntry("Tight", tight)], START, END
    )

    assert [r.label for r in results] == ["Default", "Tight", BENCHMARK_LABEL]
    benchmark = results[-1].output
    assert benchmark.config.entry_policy == "buy_and_hold"
    assert benchmark.config.symbols == ["AAA", "BBB"]
    assert benchmark.config.technical == default_strategy.technical
    assert all(t.exit_reason == ExitReason.END_OF_PERIOD for t in benchmark.trades)
    assert {t.symbol for t in benchmark.trades} == {"AAA", "BBB"}
    assert all(t.entry_date == START for t in benchmark.trades)


def test_comparison_without_benchmark_and_empty(runner, default_strategy):
    results = runner.run_comparison(
        [ComparisonEntry("Only", default_strategy)], START, END, include_benchmark=False
    )
    assert [r.label for r in results] == ["Only"]
    assert runner.run_comparison([], START, END) == []


def test_buy_and_hold_config_splits_capital_evenly():
    config = buy_and_hold_config(["A", "B", "C", "D"], 40_000)
    assert config.entry_policy == "buy_and_hold"
    assert config.initial_capital == 40_000
    assert config.risk.max_position_size_percent == 25
    assert config.risk.max_open_positions == 4
    assert config.risk.take_profit_percent is None
    assert config.risk.stop_loss_percent is None
    config.validate()
