"""
포지션 관리 모듈.

[ 역할 ]
    현금, 보유 포지션(Position), 청산 거래(ClosedTrade)를 통합 관리.
    시뮬레이터가 진입/청산할 때 이 클래스를 통해 상태를 갱신.

[ 상태 전이 ] (종목별)
    미보유 → open_position() → 보유 → close_position() → 미보유
    종목당 동시에 하나의 포지션만 허용. 롱 전용.

[ 실패 처리 ]
    "이미 보유 중", "최대 보유 종목 수 도달", "1주도 못 삼" 은 흔한 정상 상황이므로
    예외 대신 False / None을 반환한다.

[ 호출하는 곳 ]
    - backtest/simulator.py::TradeSimulator.run()이 실행마다 하나씩 생성해 소유
    - backtest/metrics.py 는 closed_trades로 성과 계산
"""

import math
import uuid
from datetime import date
from typing import Any, Optional

from signal_backtest.core.types import ClosedTrade, CombinedSignal, ExitReason, Position


class PositionTracker:
    """포지션 관리 클래스.

    TradeSimulator가 실행마다 새로 생성하며 다른 실행과 공유하지 않는다.
    closed_trades는 청산 순서대로 쌓이며 이미 기록된 거래는 수정하지 않는다.
    """

    def __init__(self, initial_capital: float):
        self._initial_capital = initial_capital
        self._cash = initial_capital                        # 가용 현금
        self._open_positions: dict[str, Position] = {}      # symbol → Position
        self._closed_trades: list[ClosedTrade] = []         # 청산 완료 거래

    # ─── 조회 ────────────────────────────────────────────────────────────────

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def initial_capital(self) -> float:
        return self._initial_capital

    @property
    def open_positions(self) -> dict[str, Position]:
        """보유 포지션 (복사본)."""
        return dict(self._open_positions)

    @property
    def open_position_count(self) -> int:
        return len(self._open_positions)

    @property
    def closed_trades(self) -> list[ClosedTrade]:
        """청산 거래 목록 (복사본)."""
        return list(self._closed_trades)

    def has_position(self, symbol: str) -> bool:
        return symbol in self._open_positions

    def open_symbols(self) -> list[str]:
        """보유 종목 목록 (진입 순서)."""
        return list(self._open_positions.keys())

    def positions_value(self, current_prices: Optional[dict[str, float]] = None) -> float:
        """보유 포지션 평가액. 당일 시세가 없는 종목은 진입가로 평가."""
        current_prices = current_prices or {}
        return sum(
            p.quantity * current_prices.get(symbol, p.entry_price)
            for symbol, p in self._open_positions.items()
        )

    def portfolio_value(self, current_prices: Optional[dict[str, float]] = None) -> float:
        """총 자산 (현금 + 보유 포지션 평가액)."""
        return self._cash + self.positions_value(current_prices)

    # ─── 진입 / 청산 ─────────────────────────────────────────────────────────

    def open_position(
        self,
        symbol: str,
        entry_date: date,
        price: float,
        max_position_size_percent: float,
        max_open_positions: int,
        signal: CombinedSignal,
        current_prices: Optional[dict[str, float]] = None,
    ) -> bool:
        """롱 포지션 진입.

        투입 금액 = min(총 자산 × 종목당 최대 비중, 가용 현금), 수량은 내림.

        Args:
            symbol: 종목 코드
            entry_date: 진입일
            price: 진입가 (당일 종가)
            max_position_size_percent: 종목당 최대 비중 (%)
            max_open_positions: 최대 동시 보유 종목 수
            signal: 진입 근거 시그널 (기여도 분석용으로 보존)
            current_prices: 다른 보유 종목 평가용 당일 시세

        Returns:
            bool: 진입 성공 여부 (실패 시 상태 변화 없음)
        """
        if symbol in self._open_positions:
            return False
        if len(self._open_positions) >= max_open_positions:
            return False
        if price <= 0:
            return False

        prices = dict(current_prices or {})
        prices[symbol] = price
        max_position_value = self.portfolio_value(prices) * (max_position_size_percent / 100)
        position_value = min(max_position_value, self._cash)
        if position_value < price:
            return False  # 1주도 살 수 없음

        quantity = math.floor(position_value / price)
        if quantity <= 0:
            return False

        self._cash -= quantity * price
        self._open_positions[symbol] = Position(
            id=str(uuid.uuid4()),
            symbol=symbol,
            entry_date=entry_date,
            entry_price=price,
            quantity=quantity,
            signal_at_entry=signal,
        )
        return True

    def close_position(
        self,
        symbol: str,
        exit_date: date,
        price: float,
        exit_reason: ExitReason,
    ) -> Optional[ClosedTrade]:
        """포지션 청산. 보유 중이 아니면 None."""
        position = self._open_positions.pop(symbol, None)
        if position is None:
            return None

        proceeds = position.quantity * price
        pnl = proceeds - position.quantity * position.entry_price
        pnl_percent = (price - position.entry_price) / position.entry_price * 100
        # 같은 날 진입/청산도 1일로 계산
        holding_days = max((exit_date - position.entry_date).days, 1)

        self._cash += proceeds
        trade = ClosedTrade(
            id=position.id,
            symbol=symbol,
            entry_date=position.entry_date,
            entry_price=position.entry_price,
            exit_date=exit_date,
            exit_price=price,
            quantity=position.quantity,
            pnl=pnl,
            pnl_percent=pnl_percent,
            holding_days=holding_days,
            exit_reason=exit_reason,
            signal_at_entry=position.signal_at_entry,
            side=position.side,
        )
        self._closed_trades.append(trade)
        return trade

    def check_exit_conditions(
        self,
        symbol: str,
        current_price: float,
        take_profit_percent: Optional[float],
        stop_loss_percent: Optional[float],
    ) -> Optional[ExitReason]:
        """익절/손절 조건 확인 (상태 변경 없음). 기준값이 None이면 해당 조건은 검사하지 않는다."""
        position = self._open_positions.get(symbol)
        if position is None:
            return None

        change_percent = (current_price - position.entry_price) / position.entry_price * 100
        if take_profit_percent is not None and change_percent >= take_profit_percent:
            return ExitReason.TAKE_PROFIT
        if stop_loss_percent is not None and change_percent <= -stop_loss_percent:
            return ExitReason.STOP_LOSS
        return None

    def get_summary(self, current_prices: Optional[dict[str, float]] = None) -> dict[str, Any]:
        """포트폴리오 요약."""
        total = self.portfolio_value(current_prices)
        return {
            "initial_capital": self._initial_capital,
            "cash": self._cash,
            "positions_value": self.positions_value(current_prices),
            "portfolio_value": total,
            "total_return_percent": (total - self._initial_capital) / self._initial_capital * 100,
            "open_positions": len(self._open_positions),
            "closed_trades": len(self._closed_trades),
        }
