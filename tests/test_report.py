from datetime import date

import pandas as pd

from signal_backtest.backtest.attribution import analyze_attribution
from signal_backtest.backtest.metrics import calculate_metrics
from signal_backtest.backtest.report import (
    equity_curve_to_frame,
    export_backtest_csv,
    generate_report,
    trades_to_frame,
)
from signal_backtest.backtest.runner import BacktestOutput
from signal_backtest.core.types import ExitReason
from signal_backtest.utils.config import StrategyConfig

from conftest import make_curve, make_trade


def _output(trades, equities):
    curve = make_curve(equities)
    return BacktestOutput(
        config=StrategyConfig(name="Report Test", symbols=["AAPL", "MSFT"]),
        start_date=curve[0].date,
        end_date=curve[-1].date,
        metrics=calculate_metrics(trades, curve, equities[0]),
        trades=trades,
        equity_curve=curve,
        attribution=analyze_attribution(trades),
        run_timestamp="2024-06-01T12:00:00",
    )


def test_trades_to_frame_columns_and_order():
    trades = [
        make_trade(100, 1.0, symbol="AAPL", exit_reason=ExitReason.TAKE_PROFIT),
        make_trade(-40, -0.4, symbol="MSFT", exit_reason=ExitReason.STOP_LOSS),
    ]
    frame = trades_to_frame(trades)
    assert frame["symbol"].tolist() == ["AAPL", "MSFT"]
    assert frame["exit_reason"].tolist() == ["take_profit", "stop_loss"]
    assert trades_to_frame([]).empty


def test_equity_curve_frame_includes_drawdown():
    frame = equity_curve_to_frame(make_curve([100, 120, 90]))
    assert frame.index.name == "date"
    assert frame["drawdown"].round(6).tolist() == [0.0, 0.0, -25.0]


def test_generate_report_groups_trades():
    trades = [
        make_trade(100, 1.0, symbol="AAPL", exit_reason=ExitReason.TAKE_PROFIT),
        make_trade(50, 0.5, symbol="AAPL", exit_reason=ExitReason.END_OF_PERIOD),
        make_trade(-40, -0.4, symbol="MSFT", exit_reason=ExitReason.STOP_LOSS),
    ]
    report = generate_report(_output(trades, [10_000 + 5 * i for i in range(30)]))
    assert report["strategy"] == "Report Test"
    assert report["trade_count"] == 3
    assert report["exit_reasons"] == {"end_of_period": 1, "stop_loss": 1, "take_profit": 1}
    assert report["pnl_by_symbol"] == {"AAPL": 150.0, "MSFT": -40.0}
    assert report["best_21d_return"] > 0
    assert len(report["attribution"]) == 2


def test_export_csv_sections(tmp_path):
    trades = [make_trade(100, 1.0, symbol="AAPL", exit_reason=ExitReason.END_OF_PERIOD)]
    path = export_backtest_csv(_output(trades, [10_000, 10_050, 10_100]), tmp_path / "out" / "bt.csv")

    assert path.exists()
    text = path.read_text(encoding="utf-8")
    for section in ("=== BACKTEST SUMMARY ===", "=== PERFORMANCE METRICS ===",
                    "=== TRADE STATISTICS ===", "=== TRADE LOG ==="):
        assert section in text
    assert "Profit Factor,Infinity" in text
    assert "Strategy,Report Test" in text
    assert "\r\n" not in text

    log = text.split("=== TRADE LOG ===\n\n", 1)[1]
    assert log.splitlines()[0].startswith("Symbol,Entry Date,Exit Date")
    assert "end of period" in log
    assert "1.00" in log


def test_export_csv_without_trades(tmp_path):
    path = export_backtest_csv(_output([], [10_000, 10_000]), tmp_path / "empty.csv")
    text = path.read_text(encoding="utf-8")
    assert "Total Trades,0" in text
    assert "Profit Factor,0.00" in text
    assert text.rstrip().endswith("Exit Reason")


def test_output_to_dict_is_serializable():
    import json

    trades = [make_trade(100, 1.0)]
    data = _output(trades, [10_000, 10_100]).to_dict()
    encoded = json.dumps(data)
    assert "Report Test" in encoded
    assert data["trades"][0]["exit_reason"] == "signal_sell"
    assert data["start_date"] == date(2024, 1, 1).isoformat()
    assert isinstance(pd.Timestamp(data["end_date"]), pd.Timestamp)
