"""
백테스트 리포트 / CSV 내보내기.

[ 역할 ]
    BacktestOutput을 DataFrame, dict 리포트, CSV 파일로 변환.

[ CSV 구성 ]
    === BACKTEST SUMMARY ===      전략명, 기간, 초기/최종 자산
    === PERFORMANCE METRICS ===   수익률, 샤프, MDD, 수익팩터
    === TRADE STATISTICS ===      거래 수, 승률, 평균 손익, 보유일
    === TRADE LOG ===             거래별 행

[ 호출하는 곳 ]
    - run_backtest.py --export 옵션
"""

import csv
import math
from pathlib import Path
from typing import Any

import pandas as pd

from signal_backtest.backtest.equity_curve import drawdown_series, rolling_return
from signal_backtest.backtest.runner import BacktestOutput
from signal_backtest.core.types import ClosedTrade, PortfolioSnapshot

MONTH_TRADING_DAYS = 21

TRADE_LOG_COLUMNS = {
    "symbol": "Symbol",
    "entry_date": "Entry Date",
    "exit_date": "Exit Date",
    "entry_price": "Entry Price",
    "exit_price": "Exit Price",
    "quantity": "Quantity",
    "pnl": "P&L ($)",
    "pnl_percent": "P&L (%)",
    "holding_days": "Holding Days",
    "exit_reason": "Exit Reason",
}


def trades_to_frame(trades: list[ClosedTrade]) -> pd.DataFrame:
    """청산 거래 목록 → DataFrame (청산 순서)."""
    rows = [
        {
            "id": t.id,
            "symbol": t.symbol,
            "entry_date": t.entry_date,
            "exit_date": t.exit_date,
            "entry_price": t.entry_price,
            "exit_price": t.exit_price,
            "quantity": t.quantity,
            "pnl": t.pnl,
            "pnl_percent": t.pnl_percent,
            "holding_days": t.holding_days,
            "exit_reason": t.exit_reason.value,
            "entry_score": t.signal_at_entry.total_score,
            "technical_score": t.signal_at_entry.technical_score,
            "fundamental_score": t.signal_at_entry.fundamental_score,
        }
        for t in trades
    ]
    columns = [
        "id", "symbol", "entry_date", "exit_date", "entry_price", "exit_price", "quantity",
        "pnl", "pnl_percent", "holding_days", "exit_reason",
        "entry_score", "technical_score", "fundamental_score",
    ]
    return pd.DataFrame(rows, columns=columns)


def equity_curve_to_frame(equity_curve: list[PortfolioSnapshot]) -> pd.DataFrame:
    """일별 스냅샷 → date 인덱스 DataFrame (고점 대비 낙폭 % 포함)."""
    df = pd.DataFrame(
        [
            {
                "date": s.date,
                "equity": s.equity,
                "cash": s.cash,
                "positions_value": s.positions_value,
                "open_position_count": s.open_position_count,
            }
            for s in equity_curve
        ],
        columns=["date", "equity", "cash", "positions_value", "open_position_count"],
    ).set_index("date")
    df["drawdown"] = drawdown_series(equity_curve).to_numpy()
    return df


def generate_report(output: BacktestOutput) -> dict[str, Any]:
    """백테스트 리포트 생성."""
    trades = trades_to_frame(output.trades)
    by_reason = trades.groupby("exit_reason").size().to_dict() if not trades.empty else {}
    by_symbol = (
        trades.groupby("symbol")["pnl"].sum().round(2).to_dict() if not trades.empty else {}
    )
    monthly = rolling_return(output.equity_curve, MONTH_TRADING_DAYS)
    return {
        "strategy": output.config.name,
        "period": f"{output.start_date} ~ {output.end_date}",
        "metrics": output.metrics.to_dict(),
        "trade_count": len(output.trades),
        "exit_reasons": by_reason,
        "pnl_by_symbol": by_symbol,
        "attribution": [a.to_dict() for a in output.attribution],
        "best_21d_return": round(float(monthly.max()), 2) if not monthly.empty else 0.0,
        "worst_21d_return": round(float(monthly.min()), 2) if not monthly.empty else 0.0,
        "run_timestamp": output.run_timestamp,
    }


def _fmt(value: float, decimals: int = 2) -> str:
    return f"{value:.{decimals}f}"


def export_backtest_csv(output: BacktestOutput, path: str | Path) -> Path:
    """요약 + 거래 로그를 CSV 파일 하나로 저장. 저장 경로 반환."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    m = output.metrics
    profit_factor = "Infinity" if math.isinf(m.profit_factor) else _fmt(m.profit_factor)

    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerows([
            ["=== BACKTEST SUMMARY ==="],
            [],
            ["Strategy", output.config.name],
            ["Period", f"{output.start_date} to {output.end_date}"],
            ["Initial Capital", f"${_fmt(m.initial_capital)}"],
            ["Final Capital", f"${_fmt(m.final_capital)}"],
            [],
            ["=== PERFORMANCE METRICS ==="],
            [],
            ["Total Return", f"{_fmt(m.total_return)}%"],
            ["Total Return ($)", f"${_fmt(m.total_return_dollar)}"],
            ["Annualized Return", f"{_fmt(m.annualized_return)}%"],
            ["Sharpe Ratio", _fmt(m.sharpe_ratio)],
            ["Max Drawdown", f"{_fmt(m.max_drawdown)}%"],
            ["Max Drawdown ($)", f"${_fmt(m.max_drawdown_dollar)}"],
            ["Profit Factor", profit_factor],
            [],
            ["=== TRADE STATISTICS ==="],
            [],
            ["Total Trades", m.total_trades],
            ["Winning Trades", m.winning_trades],
            ["Losing Trades", m.losing_trades],
            ["Win Rate", f"{_fmt(m.win_rate, 1)}%"],
            ["Avg Win", f"+{_fmt(m.avg_win_percent)}%"],
            ["Avg Loss", f"{_fmt(m.avg_loss_percent)}%"],
            ["Avg Holding Days", _fmt(m.avg_holding_days, 1)],
            ["Best Trade", f"{_fmt(m.best_trade)}%"],
            ["Worst Trade", f"{_fmt(m.worst_trade)}%"],
            [],
            [],
            ["=== TRADE LOG ==="],
            [],
        ])

        trades = trades_to_frame(output.trades)[list(TRADE_LOG_COLUMNS)].copy()
        trades["exit_reason"] = trades["exit_reason"].str.replace("_", " ")
        trades.rename(columns=TRADE_LOG_COLUMNS).to_csv(
            f, index=False, float_format="%.2f", lineterminator="\n"
        )

    return path
