"""
거래 시뮬레이션 모듈.

[ 역할 ]
    과거 시세 + 펀더멘털에 시그널 전략을 하루씩 적용하여 가상 매매를 재현.
    백테스트의 핵심 실행 루프.

[ 실행 흐름 ]
    run() 호출 시:
        1. 모든 종목의 [시작일, 종료일] 거래일 합집합 추출 (비어 있으면 빈 결과)
        2. 각 거래일에 대해:
           a. 보유 포지션 익절/손절 검사 → 조건 충족 시 청산
           b. 마지막 거래일이면 남은 포지션 전부 end_of_period 청산
              아니면 종목별(설정 순서) 시그널 평가 → 정책 판단 → 진입/청산
           c. 일별 포트폴리오 스냅샷 기록
        3. SimulationResult(trades, equity_curve, signal_history) 반환

[ 규칙 ]
    - 시그널은 평가일 이하의 데이터만 사용 (펀더멘털은 공개일 기준)
    - 종목별 20봉 미만이거나 당일 시세가 없으면 그날은 건너뜀
    - 당일 청산한 종목은 같은 날 재진입하지 않음
    - 마지막 날 시세가 없는 보유 종목은 직전 종가로 청산 → 항상 전량 청산으로 종료

[ 의존성 ]
    - backtest/position_tracker.py::PositionTracker (현금/포지션 상태)
    - strategies/ 레지스트리의 EntryPolicy (매수/매도 판단)
    - signals/technical.py, signals/fundamental.py (시그널 계산)

[ 호출하는 곳 ]
    - backtest/runner.py::BacktestRunner.run_backtest()
"""

import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from signal_backtest.backtest.position_tracker import PositionTracker
from signal_backtest.core.types import (
    ClosedTrade,
    ExitReason,
    FundamentalData,
    PortfolioSnapshot,
    SignalRecord,
    SignalType,
)
from signal_backtest.signals.fundamental import generate_fundamental_signal
from signal_backtest.signals.technical import generate_technical_signal
from signal_backtest.strategies import create_policy
from signal_backtest.utils.config import StrategyConfig

logger = logging.getLogger("signal_backtest.backtest")

MIN_HISTORY_BARS = 20

DateLike = Union[date, datetime, str, pd.Timestamp]


def to_date(value: DateLike) -> date:
    """문자열/Timestamp/datetime/date를 datetime.date로 변환."""
    # Timestamp도 datetime의 하위 클래스
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


class FundamentalTimeline:
    """종목 하나의 펀더멘털 이력. 생성 시 한 번만 정렬하고 이진 탐색으로 조회.

    report_date가 없는 레코드는 공개 시점을 알 수 없으므로 제외한다.
    """

    def __init__(self, records: Iterable[FundamentalData]):
        dated = [r for r in records if r.report_date is not None]
        self._records = sorted(dated, key=lambda r: r.report_date)
        self._dates = [r.report_date for r in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def as_of(self, as_of_date: date) -> Optional[FundamentalData]:
        """as_of_date 당일까지 공개된 가장 최근 레코드. 없으면 None."""
        idx = bisect_right(self._dates, as_of_date)
        return self._records[idx - 1] if idx else None


@dataclass
class _PriceSeries:
    """종목별 전처리된 시세 (날짜 오름차순, 날짜 중복 제거)."""
    dates: list[date]
    closes: np.ndarray
    quotes: dict[date, float]

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "_PriceSeries":
        df_copy = df[["date", "close"]].copy()
        df_copy["date"] = pd.to_datetime(df_copy["date"]).dt.date
        df_copy = (
            df_copy.dropna(subset=["close"])
            .drop_duplicates(subset="date", keep="last")
            .sort_values("date")
            .reset_index(drop=True)
        )
        dates = df_copy["date"].tolist()
        closes = df_copy["close"].to_numpy(dtype=float)
        return cls(dates=dates, closes=closes, quotes=dict(zip(dates, closes.tolist())))

    def bars_up_to(self, as_of_date: date) -> int:
        """as_of_date 이하의 봉 개수."""
        return bisect_right(self.dates, as_of_date)

    def last_close_on_or_before(self, as_of_date: date) -> Optional[float]:
        count = self.bars_up_to(as_of_date)
        return float(self.closes[count - 1]) if count else None


@dataclass
class SimulationResult:
    """시뮬레이션 결과."""
    trades: list[ClosedTrade] = field(default_factory=list)
    equity_curve: list[PortfolioSnapshot] = field(default_factory=list)
    signal_history: dict[str, list[SignalRecord]] = field(default_factory=dict)


class TradeSimulator:
    """거래 시뮬레이터. run()으로 시뮬레이션 실행.

    실행마다 새 PositionTracker를 만들므로 한 인스턴스를 여러 번 실행해도
    서로 영향을 주지 않는다.
    """

    def __init__(self, config: StrategyConfig):
        self.config = config
        self.policy = create_policy(config.entry_policy)

    def run(
        self,
        price_data: dict[str, pd.DataFrame],
        fundamental_data: Optional[dict[str, list[FundamentalData]]] = None,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
    ) -> SimulationResult:
        """시뮬레이션 실행.

        Args:
            price_data: {symbol: OHLCV DataFrame} (워밍업 구간 포함)
            fundamental_data: {symbol: FundamentalData 목록} (정렬 불필요)
            start_date: 시작일 (None이면 데이터 최초일)
            end_date: 종료일 (None이면 데이터 최종일)

        Returns:
            SimulationResult
        """
        fundamental_data = fundamental_data or {}
        series = {
            symbol: _PriceSeries.from_frame(df)
            for symbol, df in price_data.items()
            if df is not None and not df.empty
        }
        timelines = {
            symbol: FundamentalTimeline(records)
            for symbol, records in fundamental_data.items()
        }

        start = to_date(start_date) if start_date is not None else date.min
        end = to_date(end_date) if end_date is not None else date.max

        # 전체 거래일 추출
        all_dates: set[date] = set()
        for s in series.values():
            all_dates.update(d for d in s.dates if start <= d <= end)
        trading_dates = sorted(all_dates)

        result = SimulationResult()
        if not trading_dates:
            logger.warning("거래일이 없습니다.")
            return result

        logger.info(
            f"시뮬레이션 시작 [{self.config.name}/{self.policy.name}]: "
            f"{trading_dates[0]} ~ {trading_dates[-1]} ({len(trading_dates)}일, {len(self.config.symbols)}종목)"
        )

        tracker = PositionTracker(self.config.initial_capital)
        for day_idx, current_date in enumerate(trading_dates):
            is_last_day = day_idx == len(trading_dates) - 1
            current_prices = {
                symbol: series[symbol].quotes[current_date]
                for symbol in self.config.symbols
                if symbol in series and current_date in series[symbol].quotes
            }

            exited_today = self._check_exits(tracker, current_date, current_prices)

            if is_last_day:
                self._close_all(tracker, current_date, current_prices, series)
            else:
                self._evaluate_symbols(
                    tracker, current_date, current_prices, series, timelines,
                    exited_today, result.signal_history,
                )

            result.equity_curve.append(PortfolioSnapshot(
                date=current_date,
                equity=tracker.portfolio_value(current_prices),
                cash=tracker.cash,
                positions_value=tracker.positions_value(current_prices),
                open_position_count=tracker.open_position_count,
            ))

        result.trades = tracker.closed_trades
        logger.info(
            f"시뮬레이션 완료 [{self.config.name}]: 거래 {len(result.trades)}건, "
            f"최종 자산 {result.equity_curve[-1].equity:,.2f}"
        )
        return result

    def _check_exits(
        self,
        tracker: PositionTracker,
        current_date: date,
        current_prices: dict[str, float],
    ) -> set[str]:
        """보유 포지션 익절/손절 검사. 청산된 종목 집합 반환."""
        risk = self.config.risk
        exited: set[str] = set()
        for symbol in tracker.open_symbols():
            price = current_prices.get(symbol)
            if price is None:
                continue
            reason = tracker.check_exit_conditions(
                symbol, price, risk.take_profit_percent, risk.stop_loss_percent
            )
            if reason is not None:
                trade = tracker.close_position(symbol, current_date, price, reason)
                exited.add(symbol)
                logger.debug(
                    f"[{current_date}] 청산({reason.value}): {symbol} {trade.quantity}주 "
                    f"@ {price:,.2f} ({trade.pnl_percent:+.2f}%)"
                )
        return exited

    def _close_all(
        self,
        tracker: PositionTracker,
        current_date: date,
        current_prices: dict[str, float],
        series: dict[str, _PriceSeries],
    ) -> None:
        """마지막 거래일: 남은 포지션 전량 청산."""
        for symbol in tracker.open_symbols():
            price = current_prices.get(symbol)
            if price is None:
                price = series[symbol].last_close_on_or_before(current_date)
                current_prices[symbol] = price
            trade = tracker.close_position(symbol, current_date, price, ExitReason.END_OF_PERIOD)
            logger.debug(
                f"[{current_date}] 기간 종료 청산: {symbol} {trade.quantity}주 "
                f"@ {price:,.2f} ({trade.pnl_percent:+.2f}%)"
            )

    def _evaluate_symbols(
        self,
        tracker: PositionTracker,
        current_date: date,
        current_prices: dict[str, float],
        series: dict[str, _PriceSeries],
        timelines: dict[str, FundamentalTimeline],
        exited_today: set[str],
        signal_history: dict[str, list[SignalRecord]],
    ) -> None:
        """종목별 시그널 평가 후 진입/청산."""
        risk = self.config.risk
        for symbol in self.config.symbols:
            s = series.get(symbol)
            if s is None:
                continue

            # 미래 데이터 누출 방지: 평가일까지의 봉만 사용
            count = s.bars_up_to(current_date)
            if count < MIN_HISTORY_BARS:
                continue

            price = current_prices.get(symbol)
            if price is None:
                continue

            technical = generate_technical_signal(s.closes[:count], self.config.technical)
            timeline = timelines.get(symbol)
            fundamentals = timeline.as_of(current_date) if timeline else None
            fundamental = generate_fundamental_signal(fundamentals, self.config.fundamental)

            combined = self.policy.decide(technical, fundamental, self.config)
            signal_history.setdefault(symbol, []).append(SignalRecord(date=current_date, signal=combined))

            if combined.action == SignalType.BUY and not tracker.has_position(symbol):
                if symbol in exited_today:
                    continue
                opened = tracker.open_position(
                    symbol,
                    current_date,
                    price,
                    risk.max_position_size_percent,
                    risk.max_open_positions,
                    combined,
                    current_prices=current_prices,
                )
                if opened:
                    position = tracker.open_positions[symbol]
                    logger.debug(
                        f"[{current_date}] 매수: {symbol} {position.quantity}주 @ {price:,.2f} "
                        f"(점수 {combined.total_score:.1f})"
                    )
            elif combined.action == SignalType.SELL and tracker.has_position(symbol):
                trade = tracker.close_position(symbol, current_date, price, ExitReason.SIGNAL_SELL)
                logger.debug(
                    f"[{current_date}] 매도 시그널 청산: {symbol} {trade.quantity}주 "
                    f"@ {price:,.2f} ({trade.pnl_percent:+.2f}%)"
                )


def run_simulation(
    config: StrategyConfig,
    price_data: dict[str, pd.DataFrame],
    fundamental_data: Optional[dict[str, list[FundamentalData]]] = None,
    start_date: Optional[DateLike] = None,
    end_date: Optional[DateLike] = None,
) -> SimulationResult:
    """TradeSimulator(config).run(...) 단축 함수."""
    return TradeSimulator(config).run(price_data, fundamental_data, start_date, end_date)
