"""
자산 곡선 분석 유틸리티.

스냅샷 목록을 날짜 인덱스 Series로 바꿔 낙폭/구간 수익률/비교용 정규화를 계산.
리포트와 CSV 출력에 사용 (report.py, run_backtest.py --compare --export).
"""

from typing import Sequence

import pandas as pd

from signal_backtest.core.types import PortfolioSnapshot


def equity_series(equity_curve: Sequence[PortfolioSnapshot]) -> pd.Series:
    """날짜 인덱스 자산 Series."""
    return pd.Series(
        [s.equity for s in equity_curve],
        index=pd.Index([s.date for s in equity_curve], name="date"),
        name="equity",
        dtype=float,
    )


def drawdown_series(equity_curve: Sequence[PortfolioSnapshot]) -> pd.Series:
    """각 시점의 고점 대비 낙폭 (%, 0 이하)."""
    equity = equity_series(equity_curve)
    if equity.empty:
        return equity.rename("drawdown")
    peak = equity.cummax()
    drawdown = ((equity - peak) / peak * 100).where(peak > 0, 0.0)
    return drawdown.rename("drawdown")


def rolling_return(equity_curve: Sequence[PortfolioSnapshot], window_days: int) -> pd.Series:
    """window_days 거래일 전 대비 수익률 (%). 처음 window_days개 시점은 제외."""
    equity = equity_series(equity_curve)
    previous = equity.shift(window_days)
    result = ((equity - previous) / previous * 100).where(previous > 0, 0.0)
    return result.iloc[window_days:].rename("rolling_return")


def normalize_equity_curves(curves: dict[str, Sequence[PortfolioSnapshot]]) -> pd.DataFrame:
    """여러 전략의 자산 곡선을 첫날 0% 기준 수익률로 맞춘 DataFrame (열 = 라벨)."""
    columns = {}
    for label, snapshots in curves.items():
        equity = equity_series(snapshots)
        initial = equity.iloc[0] if not equity.empty else 1.0
        columns[label] = (equity - initial) / initial * 100
    return pd.DataFrame(columns)
