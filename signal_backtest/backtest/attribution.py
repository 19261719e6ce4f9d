"""
시그널 기여도 분석.

[ 역할 ]
    "어떤 시그널 소스가 실제로 좋은 거래를 예측했는가"를 측정.
    각 청산 거래의 진입 시그널(signal_at_entry)에서 기술적/펀더멘털의
    판단과 점수를 꺼내 소스별로 집계한다.

[ 집계 항목 ] (소스별)
    total_signals        - 분석한 거래 수
    buy_signals          - 진입 시점에 해당 소스가 BUY였던 거래 수
    sell_signals         - 진입 시점에 해당 소스가 SELL이었던 거래 수
    accurate_buy_signals - BUY였고 수익(pnl > 0)으로 끝난 거래 수
    buy_accuracy         - accurate / buy (%)
    avg_score_on_win/loss - BUY였던 거래 중 수익/손실 거래의 평균 진입 점수
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from signal_backtest.core.types import ClosedTrade, SignalType

SIGNAL_SOURCES = ("technical", "fundamental")


@dataclass
class SignalAttribution:
    """시그널 소스 하나의 기여도."""
    signal_type: str
    total_signals: int = 0
    buy_signals: int = 0
    sell_signals: int = 0
    accurate_buy_signals: int = 0
    buy_accuracy: float = 0.0
    avg_score_on_win: float = 0.0
    avg_score_on_loss: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _SourceStats:
    total: int = 0
    buys: int = 0
    sells: int = 0
    accurate: int = 0
    scores_on_win: list[float] = field(default_factory=list)
    scores_on_loss: list[float] = field(default_factory=list)

    def add(self, action: SignalType, score: float, profitable: bool) -> None:
        self.total += 1
        if action == SignalType.BUY:
            self.buys += 1
            if profitable:
                self.accurate += 1
                self.scores_on_win.append(score)
            else:
                self.scores_on_loss.append(score)
        elif action == SignalType.SELL:
            self.sells += 1

    def build(self, signal_type: str) -> SignalAttribution:
        return SignalAttribution(
            signal_type=signal_type,
            total_signals=self.total,
            buy_signals=self.buys,
            sell_signals=self.sells,
            accurate_buy_signals=self.accurate,
            buy_accuracy=self.accurate / self.buys * 100 if self.buys else 0.0,
            avg_score_on_win=_mean(self.scores_on_win),
            avg_score_on_loss=_mean(self.scores_on_loss),
        )


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def analyze_attribution(trades: list[ClosedTrade]) -> list[SignalAttribution]:
    """청산 거래별 진입 시그널을 소스별로 집계. 거래가 없으면 0으로 채운 결과."""
    technical = _SourceStats()
    fundamental = _SourceStats()

    for trade in trades:
        signal = trade.signal_at_entry
        profitable = trade.pnl > 0
        technical.add(signal.technical_action, signal.technical_score, profitable)
        fundamental.add(signal.fundamental_action, signal.fundamental_score, profitable)

    return [technical.build("technical"), fundamental.build("fundamental")]
