import sys
from datetime import date

import pandas as pd
import pytest

import run_backtest
from run_backtest import (
    apply_params,
    comparison_entries,
    generate_sample_data,
    generate_sample_fundamentals,
    param_to_override,
    parse_param,
)
from signal_backtest.utils.config import ComparisonConfig, Config, StrategyConfig


@pytest.mark.parametrize("raw, expected", [
    ("risk.stop_loss_percent=5", ("risk.stop_loss_percent", 5)),
    ("weights.technical=47.5", ("weights.technical", 47.5)),
    ("risk.take_profit_percent=none", ("risk.take_profit_percent", None)),
    ("sentiment.enabled=true", ("sentiment.enabled", True)),
    ("name = Fast ", ("name", "Fast")),
])
def test_parse_param(raw, expected):
    assert parse_param(raw) == expected


def test_param_to_override_nests_dotted_keys():
    assert param_to_override("risk.stop_loss_percent", 5) == {"risk": {"stop_loss_percent": 5}}
    assert param_to_override("name", "X") == {"name": "X"}


def test_apply_params_returns_new_config():
    base = StrategyConfig(symbols=["AAPL"])
    updated = apply_params(base, ["risk.stop_loss_percent=5", "risk.take_profit_percent=none", "technical.rsi_period=9"])

    assert updated.risk.stop_loss_percent == 5
    assert updated.risk.take_profit_percent is None
    assert updated.technical.rsi_period == 9
    assert updated.risk.max_open_positions == base.risk.max_open_positions
    assert base.risk.stop_loss_percent == 7


def test_sample_data_is_deterministic_per_symbol():
    first = generate_sample_data("AAPL", date(2024, 1, 1), date(2024, 3, 29))
    again = generate_sample_data("AAPL", date(2024, 1, 1), date(2024, 3, 29))
    other = generate_sample_data("MSFT", date(2024, 1, 1), date(2024, 3, 29))

    pd.testing.assert_frame_equal(first, again)
    assert not first["close"].equals(other["close"])
    assert len(first) == len(pd.bdate_range("2024-01-01", "2024-03-29"))
    assert (first["high"] >= first["low"]).all()
    assert (first["high"] >= first["close"]).all()


def test_sample_fundamentals_newest_first():
    records = generate_sample_fundamentals("AAPL", date(2023, 1, 1), date(2024, 12, 31))
    dates = [r.report_date for r in records]
    assert dates == sorted(dates, reverse=True)
    assert dates[-1] == date(2023, 1, 1)
    assert dates[0] <= date(2024, 12, 31)
    assert all(r.symbol == "AAPL" and r.eps > 0 for r in records)


def test_main_runs_sample_backtest_and_exports(tmp_path, monkeypatch, capsys):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "strategy:\n"
        "  name: Smoke\n"
        "  symbols: [AAA]\n"
        "backtest:\n"
        "  start_date: '2024-01-02'\n"
        "  end_date: '2024-03-29'\n"
        "  warmup_months: 3\n"
        f"log_dir: '{(tmp_path / 'logs').as_posix()}'\n",
        encoding="utf-8",
    )
    export_path = tmp_path / "out" / "smoke.csv"
    monkeypatch.setattr(sys, "argv", [
        "run_backtest.py", "--config", str(config_path), "--grade", "--export", str(export_path),
    ])

    run_backtest.main()

    out = capsys.readouterr().out
    assert "전략: Smoke (AAA)" in out
    assert "전략 평가" in out
    assert export_path.exists()


def test_main_lists_policies(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["run_backtest.py", "--list-policies"])
    run_backtest.main()
    out = capsys.readouterr().out
    assert "signals" in out
    assert "buy_and_hold" in out


def test_comparison_entries_copy_configs_and_apply_overrides():
    tight = StrategyConfig.from_dict({"name": "Tight", "symbols": ["AAPL"], "risk": {"stop_loss_percent": 3}})
    wide = StrategyConfig.from_dict({"name": "Wide", "symbols": ["AAPL"], "risk": {"stop_loss_percent": 12}})
    config = Config(comparisons=[ComparisonConfig("Tight", tight), ComparisonConfig("Wide", wide)])

    entries = comparison_entries(config, [], symbols=["NVDA", "AMD"], params=["risk.take_profit_percent=none"])

    assert [e.label for e in entries] == ["Tight", "Wide"]
    assert all(e.config.symbols == ["NVDA", "AMD"] for e in entries)
    assert all(e.config.risk.take_profit_percent is None for e in entries)
    assert [e.config.risk.stop_loss_percent for e in entries] == [3, 12]
    # 원래 설정은 그대로
    assert tight.symbols == ["AAPL"]
    assert wide.risk.take_profit_percent == 15
    assert config.comparisons[0].strategy is tight


def test_comparison_entries_default_to_base_strategy(tmp_path):
    extra = tmp_path / "extra.yaml"
    extra.write_text("strategy:\n  name: Extra\n  symbols: [MSFT]\n", encoding="utf-8")
    config = Config(strategy=StrategyConfig(name="Base", symbols=["AAPL"]))

    entries = comparison_entries(config, [str(extra)])

    assert [(e.label, e.config.symbols) for e in entries] == [("Base", ["AAPL"]), ("Extra", ["MSFT"])]
