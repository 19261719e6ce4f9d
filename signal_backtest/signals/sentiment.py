"""
뉴스 감성 시그널 생성.

과거 날짜의 뉴스 감성은 재현할 수 없으므로 백테스트(simulator)에서는 쓰지 않는다.
실전 매매 봇이 combiner에 sentiment_available=True로 넘길 때만 사용.
"""

from typing import Optional

from signal_backtest.core.types import SentimentData, SentimentSignalResult, SignalType
from signal_backtest.utils.config import SentimentConfig

MIN_ARTICLES_FOR_SIGNAL = 3


def generate_sentiment_signal(
    data: Optional[SentimentData],
    config: SentimentConfig,
) -> SentimentSignalResult:
    """감성 점수(0~100)를 기준값과 비교해 시그널 생성. 기사 3건 미만이면 HOLD."""
    if data is None:
        return SentimentSignalResult(
            action=SignalType.HOLD,
            score=50,
            reasons=["감성 데이터 없음"],
        )

    if data.article_count < MIN_ARTICLES_FOR_SIGNAL:
        return SentimentSignalResult(
            action=SignalType.HOLD,
            score=50,
            article_count=data.article_count,
            reasons=[f"기사 수 부족 - 신뢰도 낮음 ({data.article_count} < {MIN_ARTICLES_FOR_SIGNAL})"],
        )

    threshold = config.news_score_threshold
    score = data.score
    reasons: list[str] = []

    if score >= threshold:
        action = SignalType.BUY
        reasons.append(f"긍정적 감성 ({score:.1f} >= {threshold})")
    elif score <= 100 - threshold:
        action = SignalType.SELL
        reasons.append(f"부정적 감성 ({score:.1f} <= {100 - threshold})")
    else:
        action = SignalType.HOLD
        reasons.append(f"중립 감성 ({score:.1f})")

    reasons.append(f"기사 {data.article_count}건 기준, 라벨: {data.label}")

    return SentimentSignalResult(
        action=action,
        score=score,
        sentiment_label=data.label,
        article_count=data.article_count,
        reasons=reasons,
    )
