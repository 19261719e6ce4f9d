"""
기술적 시그널 생성.

[ 역할 ]
    RSI + SMA 지표로 매수/매도/홀드 판단과 0~100 점수를 계산.
    순수 함수 - 입력(종가 이력, 설정) 외에는 아무것도 참조하지 않는다.

[ 점수 규칙 ] (기본 50점에서 시작)
    RSI < 과매도 기준           → +20, 매수표
    RSI > 과매수 기준           → -20, 매도표
    RSI < 45 (약한 과매도)      → +5
    단기 SMA > 장기 SMA (골든크로스) → +15, 매수표
    그 외 (데드크로스)          → -15, 매도표
    현재가 < 장기 SMA 이고 RSI < 40 (저평가 구간) → +10, 매수표
    현재가 > 추세 SMA           → +5
    → 0~100으로 제한

[ 판단 ]
    매수표 2개 이상 또는 점수 >= 70 → BUY
    매도표 2개 이상 또는 점수 <= 30 → SELL
    그 외 → HOLD

[ 호출하는 곳 ]
    - backtest/simulator.py (매 거래일, 종목별)
"""

import math
from typing import Sequence, Union

import pandas as pd

from signal_backtest.core.types import SignalType, TechnicalSignalResult
from signal_backtest.indicators.rsi import calculate_rsi
from signal_backtest.indicators.sma import calculate_sma
from signal_backtest.utils.config import TechnicalConfig

INSUFFICIENT_DATA_REASON = "기술적 분석 데이터 부족"


def _closes(prices: Union[Sequence[float], pd.DataFrame]) -> list[float]:
    if isinstance(prices, pd.DataFrame):
        return prices["close"].astype(float).tolist()
    return [float(p) for p in prices]


def generate_technical_signal(
    prices: Union[Sequence[float], pd.DataFrame],
    config: TechnicalConfig,
) -> TechnicalSignalResult:
    """평가일까지의 종가 이력(오래된 순)으로 기술적 시그널 생성.

    Args:
        prices: 종가 시퀀스 또는 close 컬럼이 있는 OHLCV DataFrame
        config: 기술적 분석 파라미터

    Returns:
        TechnicalSignalResult (데이터 부족 시 HOLD / 50점)
    """
    closes = _closes(prices)
    current_price = closes[-1] if closes else 0.0

    rsi_value = calculate_rsi(closes, config.rsi_period)
    sma_short = calculate_sma(closes, config.sma_short_period)
    sma_long = calculate_sma(closes, config.sma_long_period)
    sma_trend = calculate_sma(closes, config.sma_trend_period)

    if math.isnan(rsi_value) or math.isnan(sma_short) or math.isnan(sma_long):
        return TechnicalSignalResult(
            action=SignalType.HOLD,
            score=50,
            rsi_value=50.0 if math.isnan(rsi_value) else rsi_value,
            sma_short=current_price if math.isnan(sma_short) else sma_short,
            sma_long=current_price if math.isnan(sma_long) else sma_long,
            sma_trend=current_price if math.isnan(sma_trend) else sma_trend,
            current_price=current_price,
            reasons=[INSUFFICIENT_DATA_REASON],
        )

    score = 50.0
    reasons: list[str] = []
    buy_votes = 0
    sell_votes = 0

    # RSI
    if rsi_value < config.rsi_oversold:
        score += 20
        buy_votes += 1
        reasons.append(f"RSI 과매도 ({rsi_value:.1f} < {config.rsi_oversold})")
    elif rsi_value > config.rsi_overbought:
        score -= 20
        sell_votes += 1
        reasons.append(f"RSI 과매수 ({rsi_value:.1f} > {config.rsi_overbought})")
    elif rsi_value < 45:
        score += 5
        reasons.append(f"RSI 중립-저점 ({rsi_value:.1f})")

    # 이동평균 교차
    if sma_short > sma_long:
        score += 15
        buy_votes += 1
        reasons.append(
            f"골든크로스 (SMA{config.sma_short_period} {sma_short:.2f} > "
            f"SMA{config.sma_long_period} {sma_long:.2f})"
        )
    else:
        score -= 15
        sell_votes += 1
        reasons.append(
            f"데드크로스 (SMA{config.sma_short_period} {sma_short:.2f} <= "
            f"SMA{config.sma_long_period} {sma_long:.2f})"
        )

    # 장기 이평 아래 + RSI 약세 → 저평가 매수 기회
    if current_price < sma_long and rsi_value < 40:
        score += 10
        buy_votes += 1
        reasons.append(f"저평가 구간: SMA{config.sma_long_period} 하회 + RSI 약세")

    if not math.isnan(sma_trend) and current_price > sma_trend:
        score += 5
        reasons.append(f"SMA{config.sma_trend_period} 추세선 상회")

    score = max(0.0, min(100.0, score))

    action = SignalType.HOLD
    if buy_votes >= 2 or score >= 70:
        action = SignalType.BUY
    elif sell_votes >= 2 or score <= 30:
        action = SignalType.SELL

    return TechnicalSignalResult(
        action=action,
        score=score,
        rsi_value=rsi_value,
        sma_short=sma_short,
        sma_long=sma_long,
        sma_trend=current_price if math.isnan(sma_trend) else sma_trend,
        current_price=current_price,
        reasons=reasons,
    )
