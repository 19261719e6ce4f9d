"""
매수 후 보유 정책 (벤치마크용).

[ 역할 ]
    첫 평가일에 모든 종목을 매수하고 기간 끝까지 보유.
    전략 비교 시 "Buy & Hold" 기준선으로 사용 (backtest/runner.py::buy_and_hold_config).

[ 동작 ]
    - 기록용으로 시그널 조합 결과를 계산하되, action은 항상 BUY로 덮어쓴다.
    - 거부권은 무시 (RSI 과매수 상승장에서도 진입해야 기준선 역할을 함).
    - SELL을 내지 않으므로 청산은 익절/손절(러너에서 비활성) 또는 기간 종료 시에만 발생.
"""

from dataclasses import replace

from signal_backtest.core.entry_policy import EntryPolicy
from signal_backtest.core.types import (
    CombinedSignal,
    FundamentalSignalResult,
    SignalType,
    TechnicalSignalResult,
)
from signal_backtest.signals.combiner import combine_signals
from signal_backtest.strategies import register
from signal_backtest.utils.config import StrategyConfig

BUY_AND_HOLD_REASON = "[B&H] 매수 후 보유 - 첫 평가일 진입, 기간 종료 시 청산"


@register("buy_and_hold")
class BuyAndHoldPolicy(EntryPolicy):
    """매수 후 보유 정책 구현체."""

    def __init__(self):
        super().__init__(name="buy_and_hold")

    def decide(
        self,
        technical: TechnicalSignalResult,
        fundamental: FundamentalSignalResult,
        config: StrategyConfig,
    ) -> CombinedSignal:
        combined = combine_signals(
            technical=technical,
            fundamental=fundamental,
            weights=config.weights,
            sentiment_available=False,
        )
        reasons = tuple(r for r in combined.reasons if not r.startswith("[Veto]"))
        return replace(
            combined,
            action=SignalType.BUY,
            vetoed=False,
            veto_reason=None,
            reasons=reasons + (BUY_AND_HOLD_REASON,),
        )
