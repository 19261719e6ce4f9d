"""
백테스트 성과 지표 계산 모듈.

[ 역할 ]
    시뮬레이션 결과(청산 거래 + 일별 스냅샷)를 받아 성과 지표를 계산.
    calculate_metrics() 함수가 핵심.

[ 계산하는 지표 ]
    - 총 수익률(% / $) / 연환산 수익률
    - 샤프 비율 (위험 대비 수익)
    - MDD (최대 낙폭, % / $, 음수로 표기)
    - 승률, 평균 수익/손실(%), 수익 팩터, 최고/최저 거래
    - 평균 보유일, 연속 승/패

[ 호출하는 곳 ]
    - backtest/runner.py::BacktestRunner.run_backtest() 시뮬레이션 완료 후 호출

[ 입력 데이터 ]
    - trades: SimulationResult.trades (청산 순서)
    - equity_curve: SimulationResult.equity_curve (거래일별 스냅샷)
"""

import math
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np

from signal_backtest.core.types import ClosedTrade, PortfolioSnapshot

TRADING_DAYS_PER_YEAR = 252
RISK_FREE_RATE = 0.05


@dataclass
class BacktestMetrics:
    """백테스트 성과 지표. summary()로 포맷된 리포트 출력 가능."""
    total_return: float = 0.0          # 총 수익률 (%)
    total_return_dollar: float = 0.0   # 총 손익 ($)
    annualized_return: float = 0.0     # 연환산 수익률 (%)
    max_drawdown: float = 0.0          # 최대 낙폭 MDD (%, 0 이하)
    max_drawdown_dollar: float = 0.0   # MDD 시점 낙폭 ($, 0 이하)
    sharpe_ratio: float = 0.0          # 샤프 비율 (1 이상 양호)
    profit_factor: float = 0.0         # 총이익 / 총손실 (손실 없이 이익만 있으면 inf)
    win_rate: float = 0.0              # 승률 (%)
    total_trades: int = 0              # 청산 거래 수
    winning_trades: int = 0            # 수익 거래 수 (pnl > 0)
    losing_trades: int = 0             # 손실 거래 수 (pnl <= 0)
    avg_win_percent: float = 0.0       # 수익 거래 평균 수익률 (%)
    avg_loss_percent: float = 0.0      # 손실 거래 평균 수익률 (%)
    avg_holding_days: float = 0.0      # 평균 보유 기간 (일)
    best_trade: float = 0.0            # 최고 거래 수익률 (%)
    worst_trade: float = 0.0           # 최저 거래 수익률 (%)
    initial_capital: float = 0.0
    final_capital: float = 0.0
    max_consecutive_wins: int = 0      # 최대 연속 수익
    max_consecutive_losses: int = 0    # 최대 연속 손실

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리 변환."""
        return asdict(self)

    def summary(self) -> str:
        """성과 요약 문자열."""
        pf = "∞" if math.isinf(self.profit_factor) else f"{self.profit_factor:.2f}"
        lines = [
            "=" * 50,
            "백테스트 성과 리포트",
            "=" * 50,
            f"초기 자금:       {self.initial_capital:>12,.2f}$",
            f"최종 자산:       {self.final_capital:>12,.2f}$",
            f"총 수익률:       {self.total_return:>12.2f}%",
            f"총 손익:         {self.total_return_dollar:>12,.2f}$",
            f"연환산 수익률:    {self.annualized_return:>12.2f}%",
            f"샤프 비율:       {self.sharpe_ratio:>12.2f}",
            f"최대 낙폭(MDD):  {self.max_drawdown:>12.2f}%",
            "-" * 50,
            f"총 거래 횟수:    {self.total_trades:>12d}",
            f"승률:            {self.win_rate:>12.2f}%",
            f"수익 거래:       {self.winning_trades:>12d}",
            f"손실 거래:       {self.losing_trades:>12d}",
            f"평균 수익:       {self.avg_win_percent:>12.2f}%",
            f"평균 손실:       {self.avg_loss_percent:>12.2f}%",
            f"수익 팩터:       {pf:>12}",
            f"평균 보유일:     {self.avg_holding_days:>12.1f}",
            f"최고 거래:       {self.best_trade:>12.2f}%",
            f"최저 거래:       {self.worst_trade:>12.2f}%",
            "-" * 50,
            f"최대 연속 수익:  {self.max_consecutive_wins:>12d}",
            f"최대 연속 손실:  {self.max_consecutive_losses:>12d}",
            "=" * 50,
        ]
        return "\n".join(lines)


def calculate_max_drawdown(equity_curve: list[PortfolioSnapshot]) -> tuple[float, float]:
    """(MDD %, MDD $). 둘 다 0 이하."""
    if not equity_curve:
        return 0.0, 0.0

    peak = equity_curve[0].equity
    max_dd = 0.0
    max_dd_dollar = 0.0
    for snapshot in equity_curve:
        if snapshot.equity > peak:
            peak = snapshot.equity
        dd_dollar = peak - snapshot.equity
        dd = dd_dollar / peak * 100 if peak > 0 else 0.0
        if dd > max_dd:
            max_dd = dd
            max_dd_dollar = dd_dollar
    return -max_dd, -max_dd_dollar


def calculate_sharpe_ratio(
    equity_curve: list[PortfolioSnapshot],
    risk_free_rate: float = RISK_FREE_RATE,
) -> float:
    """연환산 샤프 비율.

    일별 수익률 평균에서 일별 무위험수익률을 빼고, 일별 수익률의
    모표준편차(ddof=0)로 나눈 뒤 sqrt(252)를 곱한다.
    스냅샷이 2개 미만이거나 변동이 없으면 0.
    """
    if len(equity_curve) < 2:
        return 0.0

    equity = np.array([s.equity for s in equity_curve], dtype=float)
    prev = equity[:-1]
    valid = prev > 0
    if not valid.any():
        return 0.0
    daily_returns = (equity[1:][valid] - prev[valid]) / prev[valid]

    std = float(np.std(daily_returns))
    if std == 0:
        return 0.0
    excess = float(np.mean(daily_returns)) - risk_free_rate / TRADING_DAYS_PER_YEAR
    return excess / std * math.sqrt(TRADING_DAYS_PER_YEAR)


def _max_streaks(trades: list[ClosedTrade]) -> tuple[int, int]:
    """청산 순서 기준 최대 연속 수익/손실 횟수."""
    consecutive_wins = 0
    consecutive_losses = 0
    max_wins = 0
    max_losses = 0
    for t in trades:
        if t.pnl > 0:
            consecutive_wins += 1
            consecutive_losses = 0
            max_wins = max(max_wins, consecutive_wins)
        else:
            consecutive_losses += 1
            consecutive_wins = 0
            max_losses = max(max_losses, consecutive_losses)
    return max_wins, max_losses


def calculate_metrics(
    trades: list[ClosedTrade],
    equity_curve: list[PortfolioSnapshot],
    initial_capital: float,
    risk_free_rate: float = RISK_FREE_RATE,
) -> BacktestMetrics:
    """성과 지표 계산. runner.py에서 시뮬레이션 완료 후 호출됨.

    Args:
        trades: 청산 거래 목록
        equity_curve: 거래일별 포트폴리오 스냅샷
        initial_capital: 초기 자금
        risk_free_rate: 연 무위험수익률 (샤프 비율용)
    """
    metrics = BacktestMetrics(initial_capital=initial_capital, final_capital=initial_capital)

    # ─── 수익률 계산 ─────────────────────────────────────────────────────
    if equity_curve:
        metrics.final_capital = equity_curve[-1].equity
    metrics.total_return_dollar = metrics.final_capital - initial_capital
    metrics.total_return = metrics.total_return_dollar / initial_capital * 100

    # 연환산: (최종/초기)^(1/년수) - 1, 년수 = 거래일 / 252
    years = len(equity_curve) / TRADING_DAYS_PER_YEAR
    if years > 0 and metrics.final_capital > 0:
        metrics.annualized_return = ((metrics.final_capital / initial_capital) ** (1 / years) - 1) * 100

    # ─── 위험 지표 ────────────────────────────────────────────────────────
    metrics.max_drawdown, metrics.max_drawdown_dollar = calculate_max_drawdown(equity_curve)
    metrics.sharpe_ratio = calculate_sharpe_ratio(equity_curve, risk_free_rate)

    # ─── 거래 기반 지표 ───────────────────────────────────────────────────
    metrics.total_trades = len(trades)
    if not trades:
        return metrics

    winners = [t for t in trades if t.pnl > 0]
    losers = [t for t in trades if t.pnl <= 0]
    metrics.winning_trades = len(winners)
    metrics.losing_trades = len(losers)
    metrics.win_rate = len(winners) / len(trades) * 100

    if winners:
        metrics.avg_win_percent = sum(t.pnl_percent for t in winners) / len(winners)
    if losers:
        metrics.avg_loss_percent = sum(t.pnl_percent for t in losers) / len(losers)
    metrics.avg_holding_days = sum(t.holding_days for t in trades) / len(trades)

    gross_profit = sum(t.pnl for t in winners)
    gross_loss = abs(sum(t.pnl for t in losers))
    if gross_loss > 0:
        metrics.profit_factor = gross_profit / gross_loss
    else:
        metrics.profit_factor = float("inf") if gross_profit > 0 else 0.0

    metrics.best_trade = max(t.pnl_percent for t in trades)
    metrics.worst_trade = min(t.pnl_percent for t in trades)
    metrics.max_consecutive_wins, metrics.max_consecutive_losses = _max_streaks(trades)

    return metrics
