"""
시그널 조합 정책 (기본).

combiner의 가중 점수 + 다수결 + 거부권 결과를 그대로 따른다.
BUY → 미보유 시 진입, SELL → 보유 시 signal_sell 청산.
"""

from signal_backtest.core.entry_policy import EntryPolicy
from signal_backtest.core.types import (
    CombinedSignal,
    FundamentalSignalResult,
    TechnicalSignalResult,
)
from signal_backtest.signals.combiner import combine_signals
from signal_backtest.strategies import register
from signal_backtest.utils.config import StrategyConfig


@register("signals")
class SignalVotePolicy(EntryPolicy):
    """시그널 조합 정책 구현체."""

    def __init__(self):
        super().__init__(name="signals")

    def decide(
        self,
        technical: TechnicalSignalResult,
        fundamental: FundamentalSignalResult,
        config: StrategyConfig,
    ) -> CombinedSignal:
        # 과거 시점의 뉴스 감성은 재현 불가 → 항상 제외
        return combine_signals(
            technical=technical,
            fundamental=fundamental,
            weights=config.weights,
            sentiment_available=False,
        )
