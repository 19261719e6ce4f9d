"""
진입 정책 추상 클래스 정의.

[ 역할 ]
    시뮬레이터가 종목별로 계산한 기술적/펀더멘털 시그널을 받아
    그날의 최종 판단(CombinedSignal)을 돌려주는 인터페이스.
    시그널 계산 자체는 signals/ 의 순수 함수가 하고,
    정책은 "그 결과로 무엇을 할지"만 결정한다.

[ 구현체 ]
    - strategies/signal_vote.py::SignalVotePolicy   ("signals", 기본)
    - strategies/buy_and_hold.py::BuyAndHoldPolicy  ("buy_and_hold", 벤치마크)

[ 호출하는 곳 ]
    - backtest/simulator.py::TradeSimulator._evaluate_symbols()에서 매일 decide() 호출
"""

from abc import ABC, abstractmethod

from signal_backtest.core.types import (
    CombinedSignal,
    FundamentalSignalResult,
    TechnicalSignalResult,
)
from signal_backtest.utils.config import StrategyConfig


class EntryPolicy(ABC):
    """진입 정책 추상 클래스.

    새 정책을 만들려면 이 클래스를 상속받아 decide()를 구현하고
    strategies/ 에 @register("이름")으로 등록하면 된다.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def decide(
        self,
        technical: TechnicalSignalResult,
        fundamental: FundamentalSignalResult,
        config: StrategyConfig,
    ) -> CombinedSignal:
        """하루치 최종 판단.

        Args:
            technical: 기술적 시그널
            fundamental: 펀더멘털 시그널 (평가일 이전 공개분 기준)
            config: 전략 설정 (읽기 전용)

        Returns:
            CombinedSignal: BUY면 미보유 시 진입, SELL이면 보유 시 청산
        """
        ...
