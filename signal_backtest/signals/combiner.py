"""
시그널 조합 모듈.

[ 역할 ]
    기술적 + 펀더멘털 (+ 선택적으로 감성) 시그널을 하나의 최종 판단으로 합친다.
    가중 점수 → 다수결 → 거부권(veto) 순서로 적용.

[ 가중치 정규화 ]
    감성 사용 불가(백테스트)면 기술/펀더멘털 두 개만으로 합이 100이 되게 환산.
        기본값 40/35 → 53.33% / 46.67%
    감성 사용 가능하면 세 개 모두로 환산.

[ 판단 ]
    총점 >= 55 AND 매수표 >= 1 → BUY
    총점 <= 35 OR  매도표 >= 2 → SELL
    그 외 → HOLD

[ 거부권 ] (BUY 후보에만 적용, 걸리면 HOLD로 강등)
    펀더멘털 점수 <= 20
    RSI > 75
    감성 사용 가능 + 라벨이 bearish

[ 호출하는 곳 ]
    - strategies/signal_vote.py, strategies/buy_and_hold.py
"""

from typing import Optional

from signal_backtest.core.types import (
    CombinedSignal,
    FundamentalSignalResult,
    SentimentSignalResult,
    SignalType,
    TechnicalSignalResult,
)
from signal_backtest.utils.config import SignalWeights

BUY_SCORE_THRESHOLD = 55
SELL_SCORE_THRESHOLD = 35
SELL_VOTES_REQUIRED = 2
FUNDAMENTAL_VETO_SCORE = 20
RSI_VETO_LEVEL = 75


def normalize_weights(
    weights: SignalWeights,
    sentiment_available: bool = False,
) -> tuple[float, float, float]:
    """(기술, 펀더멘털, 감성) 가중치를 합 100인 %로 환산."""
    if sentiment_available:
        total = weights.technical + weights.fundamental + weights.sentiment
        return (
            weights.technical / total * 100,
            weights.fundamental / total * 100,
            weights.sentiment / total * 100,
        )
    total = weights.technical + weights.fundamental
    return weights.technical / total * 100, weights.fundamental / total * 100, 0.0


def combine_signals(
    technical: TechnicalSignalResult,
    fundamental: FundamentalSignalResult,
    weights: SignalWeights,
    sentiment: Optional[SentimentSignalResult] = None,
    sentiment_available: bool = False,
) -> CombinedSignal:
    """가중 점수 + 다수결 + 거부권으로 최종 시그널 생성."""
    use_sentiment = sentiment_available and sentiment is not None
    tech_weight, fund_weight, sent_weight = normalize_weights(weights, use_sentiment)

    total_score = technical.score * tech_weight / 100 + fundamental.score * fund_weight / 100
    sources = [technical.action, fundamental.action]
    if use_sentiment:
        total_score += sentiment.score * sent_weight / 100
        sources.append(sentiment.action)

    buy_votes = sources.count(SignalType.BUY)
    sell_votes = sources.count(SignalType.SELL)

    action = SignalType.HOLD
    if total_score >= BUY_SCORE_THRESHOLD and buy_votes >= 1:
        action = SignalType.BUY
    elif total_score <= SELL_SCORE_THRESHOLD or sell_votes >= SELL_VOTES_REQUIRED:
        action = SignalType.SELL

    veto_reason = None
    if action == SignalType.BUY:
        if fundamental.score <= FUNDAMENTAL_VETO_SCORE:
            veto_reason = f"펀더멘털 점수 위험 수준 ({fundamental.score:.0f} <= {FUNDAMENTAL_VETO_SCORE}) - 매수 거부"
        elif technical.rsi_value > RSI_VETO_LEVEL:
            veto_reason = f"RSI 과매수 ({technical.rsi_value:.1f} > {RSI_VETO_LEVEL}) - 매수 거부"
        elif use_sentiment and sentiment.sentiment_label == "bearish":
            veto_reason = "부정적 뉴스 감성 - 매수 거부"
    if veto_reason:
        action = SignalType.HOLD

    reasons = [f"[Tech] {r}" for r in technical.reasons]
    reasons += [f"[Fund] {r}" for r in fundamental.reasons]
    if use_sentiment:
        reasons += [f"[Sent] {r}" for r in sentiment.reasons]
    if veto_reason:
        reasons.append(f"[Veto] {veto_reason}")

    return CombinedSignal(
        action=action,
        total_score=total_score,
        technical_score=technical.score,
        fundamental_score=fundamental.score,
        technical_weight=tech_weight,
        fundamental_weight=fund_weight,
        technical_action=technical.action,
        fundamental_action=fundamental.action,
        reasons=tuple(reasons),
        vetoed=veto_reason is not None,
        veto_reason=veto_reason,
        sentiment_score=sentiment.score if use_sentiment else None,
        sentiment_weight=sent_weight,
        sentiment_action=sentiment.action if use_sentiment else None,
    )
