"""
백테스트 실행기 (최상위 오케스트레이터).

[ 실행 흐름 ]
    run_backtest() 호출 시:
        1. 시세 조회 (시작일보다 warmup_months 앞부터 → SMA200 등 지표 준비)
        2. 펀더멘털 조회
        3. TradeSimulator 실행
        4. 성과 지표 + 시그널 기여도 계산
        5. BacktestOutput 반환
    각 단계 전후로 on_progress 콜백에 진행상황 전달 (참고용, 흐름 제어에 쓰지 않음)

    run_comparison() 호출 시:
        전략마다 run_backtest() 실행 후, 첫 전략의 종목/자금으로
        "Buy & Hold" 벤치마크를 추가 실행.

[ 의존성 ]
    - data/historical_data.py::HistoricalDataService
    - data/fundamental_data.py::FundamentalDataService
    - backtest/simulator.py, backtest/metrics.py, backtest/attribution.py

[ 호출하는 곳 ]
    - run_backtest.py (진입점)
"""

import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

from signal_backtest.backtest.attribution import SignalAttribution, analyze_attribution
from signal_backtest.backtest.metrics import BacktestMetrics, calculate_metrics
from signal_backtest.backtest.simulator import DateLike, TradeSimulator, to_date
from signal_backtest.core.types import (
    BacktestProgress,
    ClosedTrade,
    PortfolioSnapshot,
    ProgressCallback,
    ProgressPhase,
    SignalRecord,
)
from signal_backtest.data.fundamental_data import FundamentalDataService
from signal_backtest.data.historical_data import HistoricalDataService
from signal_backtest.utils.config import BacktestConfig, RiskConfig, StrategyConfig

logger = logging.getLogger("signal_backtest.runner")

BENCHMARK_LABEL = "Buy & Hold"


@dataclass
class BacktestOutput:
    """백테스트 한 번의 전체 결과."""
    config: StrategyConfig
    start_date: date
    end_date: date
    metrics: BacktestMetrics
    trades: list[ClosedTrade] = field(default_factory=list)
    equity_curve: list[PortfolioSnapshot] = field(default_factory=list)
    attribution: list[SignalAttribution] = field(default_factory=list)
    signal_history: dict[str, list[SignalRecord]] = field(default_factory=dict)
    run_timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화 가능한 딕셔너리. 날짜는 ISO 문자열, Enum은 값으로."""
        return {
            "config": asdict(self.config),
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "metrics": self.metrics.to_dict(),
            "trades": [
                {
                    "id": t.id,
                    "symbol": t.symbol,
                    "entry_date": t.entry_date.isoformat(),
                    "entry_price": t.entry_price,
                    "exit_date": t.exit_date.isoformat(),
                    "exit_price": t.exit_price,
                    "quantity": t.quantity,
                    "side": t.side,
                    "pnl": t.pnl,
                    "pnl_percent": t.pnl_percent,
                    "holding_days": t.holding_days,
                    "exit_reason": t.exit_reason.value,
                    "entry_score": t.signal_at_entry.total_score,
                }
                for t in self.trades
            ],
            "equity_curve": [
                {
                    "date": s.date.isoformat(),
                    "equity": s.equity,
                    "cash": s.cash,
                    "positions_value": s.positions_value,
                    "open_position_count": s.open_position_count,
                }
                for s in self.equity_curve
            ],
            "attribution": [a.to_dict() for a in self.attribution],
            "run_timestamp": self.run_timestamp,
        }


@dataclass
class ComparisonEntry:
    label: str
    config: StrategyConfig


@dataclass
class ComparisonResult:
    label: str
    output: BacktestOutput


def buy_and_hold_config(symbols: list[str], initial_capital: float) -> StrategyConfig:
    """균등 비중 매수 후 보유 벤치마크 설정.

    첫 평가일에 종목마다 100/n % 씩 매수하고 기간 종료일에 전량 청산.
    익절/손절은 비활성.
    """
    n = max(len(symbols), 1)
    return StrategyConfig(
        name="Buy & Hold Benchmark",
        description="Equal-weight buy and hold of all symbols",
        symbols=list(symbols),
        initial_capital=initial_capital,
        entry_policy="buy_and_hold",
        risk=RiskConfig(
            take_profit_percent=None,
            stop_loss_percent=None,
            max_position_size_percent=100 / n,
            max_open_positions=n,
        ),
    )


class BacktestRunner:
    """백테스트 실행기.

    사용 예:
        runner = BacktestRunner(HistoricalDataService(provider), FundamentalDataService(provider))
        output = runner.run_backtest(config.strategy, "2024-01-01", "2024-12-31")
        print(output.metrics.summary())
    """

    def __init__(
        self,
        historical_service: HistoricalDataService,
        fundamental_service: FundamentalDataService,
        backtest_config: Optional[BacktestConfig] = None,
    ):
        self.historical_service = historical_service
        self.fundamental_service = fundamental_service
        self.backtest_config = backtest_config or BacktestConfig()

    def _notify(
        self,
        on_progress: Optional[ProgressCallback],
        phase: ProgressPhase,
        current: int,
        total: int,
        message: str,
    ) -> None:
        """진행상황 전달. 콜백 예외는 로그만 남기고 무시."""
        logger.debug(f"[{phase.value}] {current}/{total} {message}")
        if on_progress is None:
            return
        try:
            on_progress(BacktestProgress(phase=phase, current=current, total=total, message=message))
        except Exception as e:
            logger.warning(f"진행상황 콜백 오류 (무시): {e}")

    def run_backtest(
        self,
        config: StrategyConfig,
        start_date: DateLike,
        end_date: DateLike,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BacktestOutput:
        """전략 하나의 백테스트 실행.

        Args:
            config: 전략 설정
            start_date: 시뮬레이션 시작일
            end_date: 시뮬레이션 종료일
            on_progress: 진행상황 콜백 (선택)

        Raises:
            ValueError: 설정 오류 (validate 실패, 알 수 없는 진입 정책)
        """
        config.validate()
        simulator = TradeSimulator(config)

        start = to_date(start_date)
        end = to_date(end_date)
        warmup_start = (pd.Timestamp(start) - pd.DateOffset(months=self.backtest_config.warmup_months)).date()
        n = len(config.symbols)
        logger.info(f"백테스트 시작 [{config.name}]: {start} ~ {end} (워밍업 {warmup_start}부터)")

        # 1. 시세
        self._notify(on_progress, ProgressPhase.FETCHING_PRICES, 0, n, f"{n}개 종목 시세 조회 중...")
        price_data = self.historical_service.get_multi_bars(
            config.symbols, warmup_start, end, self.backtest_config.timeframe
        )
        self._notify(on_progress, ProgressPhase.FETCHING_PRICES, n, n, "시세 조회 완료")

        # 2. 펀더멘털
        self._notify(on_progress, ProgressPhase.FETCHING_FUNDAMENTALS, 0, n, f"{n}개 종목 펀더멘털 조회 중...")
        fundamental_data = self.fundamental_service.get_multi_fundamentals(config.symbols)
        self._notify(on_progress, ProgressPhase.FETCHING_FUNDAMENTALS, n, n, "펀더멘털 조회 완료")

        # 3. 시뮬레이션
        self._notify(on_progress, ProgressPhase.SIMULATING, 0, 1, "시뮬레이션 실행 중...")
        result = simulator.run(price_data, fundamental_data, start, end)
        self._notify(on_progress, ProgressPhase.SIMULATING, 1, 1, "시뮬레이션 완료")

        # 4. 성과 지표 + 기여도
        self._notify(on_progress, ProgressPhase.CALCULATING_METRICS, 0, 1, "성과 지표 계산 중...")
        metrics = calculate_metrics(
            result.trades,
            result.equity_curve,
            config.initial_capital,
            self.backtest_config.risk_free_rate,
        )
        attribution = analyze_attribution(result.trades)
        self._notify(on_progress, ProgressPhase.COMPLETE, 1, 1, "백테스트 완료")

        logger.info(
            f"백테스트 완료 [{config.name}]: 총 수익률 {metrics.total_return:.2f}%, "
            f"거래 {metrics.total_trades}건"
        )
        return BacktestOutput(
            config=config,
            start_date=start,
            end_date=end,
            metrics=metrics,
            trades=result.trades,
            equity_curve=result.equity_curve,
            attribution=attribution,
            signal_history=result.signal_history,
            run_timestamp=datetime.now().isoformat(timespec="seconds"),
        )

    def run_comparison(
        self,
        entries: list[ComparisonEntry],
        start_date: DateLike,
        end_date: DateLike,
        on_progress: Optional[ProgressCallback] = None,
        include_benchmark: bool = True,
    ) -> list[ComparisonResult]:
        """여러 전략 비교 실행. 마지막에 Buy & Hold 벤치마크 결과를 추가."""
        if not entries:
            return []

        total = len(entries) + (1 if include_benchmark else 0)
        results: list[ComparisonResult] = []
        for i, entry in enumerate(entries):
            self._notify(on_progress, ProgressPhase.SIMULATING, i, total, f"백테스트 실행 중: {entry.label}...")
            output = self.run_backtest(entry.config, start_date, end_date)
            results.append(ComparisonResult(label=entry.label, output=output))

        if include_benchmark:
            first = entries[0].config
            self._notify(
                on_progress, ProgressPhase.SIMULATING, len(entries), total, "Buy & Hold 벤치마크 실행 중..."
            )
            benchmark = buy_and_hold_config(first.symbols, first.initial_capital)
            # 벤치마크도 비교 대상과 같은 지표 파라미터로 시그널을 기록
            benchmark = replace(benchmark, technical=first.technical, fundamental=first.fundamental)
            output = self.run_backtest(benchmark, start_date, end_date)
            results.append(ComparisonResult(label=BENCHMARK_LABEL, output=output))

        self._notify(on_progress, ProgressPhase.COMPLETE, total, total, "비교 완료")
        return results
