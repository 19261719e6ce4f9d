"""
펀더멘털 시그널 생성.

[ 역할 ]
    PE/EPS/EPS 성장률/베타/배당/시가총액으로 0~100 점수와 매수/매도/홀드 판단.
    데이터가 없으면 HOLD / 50점 (중립).

[ 점수 규칙 ] (기본 30점에서 시작)
    PE ∈ [min, max]          → +20 (양호)
    PE < 0                   → -10
    PE > max                 → -5
    0 < PE < min             → -5  (비정상적으로 낮음)
    EPS > 0 → +15 / EPS <= 0 → -10
    EPS 성장률 >= 최소값 → +15 / 미만 → -5   (값이 있을 때만)
    0 < 베타 <= max → +10 / 베타 > max → -5
    배당수익률 >= 최소값 → +5
    시가총액 >= 최소값 → +5

[ 판단 ]
    점수 >= 50 AND EPS > 0 AND PE 양호  → BUY  (세 조건 모두 필요)
    점수 <= 25                           → SELL
"""

from typing import Optional

from signal_backtest.core.types import FundamentalData, FundamentalSignalResult, SignalType
from signal_backtest.utils.config import FundamentalConfig


def _pe_favorable(pe_ratio: Optional[float], config: FundamentalConfig) -> bool:
    return (
        pe_ratio is not None
        and pe_ratio > 0
        and config.pe_ratio_min <= pe_ratio <= config.pe_ratio_max
    )


def generate_fundamental_signal(
    data: Optional[FundamentalData],
    config: FundamentalConfig,
) -> FundamentalSignalResult:
    """평가일 기준 최신 펀더멘털 데이터로 시그널 생성."""
    if data is None:
        return FundamentalSignalResult(
            action=SignalType.HOLD,
            score=50,
            reasons=["펀더멘털 데이터 없음"],
        )

    score = 30.0
    reasons: list[str] = []

    pe = data.pe_ratio
    if pe is not None:
        if _pe_favorable(pe, config):
            score += 20
            reasons.append(f"PE 양호 ({pe:.1f}, 기준 {config.pe_ratio_min}~{config.pe_ratio_max})")
        elif pe < 0:
            score -= 10
            reasons.append(f"PE 음수 ({pe:.1f})")
        elif pe > config.pe_ratio_max:
            score -= 5
            reasons.append(f"PE 과다 ({pe:.1f} > {config.pe_ratio_max})")
        elif 0 < pe < config.pe_ratio_min:
            score -= 5
            reasons.append(f"PE 비정상 저평가 ({pe:.1f} < {config.pe_ratio_min})")

    if data.eps is not None:
        if data.eps > 0:
            score += 15
            reasons.append(f"EPS 흑자 (${data.eps:.2f})")
        else:
            score -= 10
            reasons.append(f"EPS 적자 (${data.eps:.2f})")

    if data.eps_growth is not None:
        if data.eps_growth >= config.eps_growth_min:
            score += 15
            reasons.append(f"EPS 성장률 충족 ({data.eps_growth * 100:.1f}%)")
        else:
            score -= 5
            reasons.append(f"EPS 성장률 미달 ({data.eps_growth * 100:.1f}%)")

    if data.beta is not None:
        if 0 < data.beta <= config.beta_max:
            score += 10
            reasons.append(f"베타 적정 ({data.beta:.2f} <= {config.beta_max})")
        elif data.beta > config.beta_max:
            score -= 5
            reasons.append(f"베타 과다 ({data.beta:.2f} > {config.beta_max})")

    if data.dividend_yield is not None and data.dividend_yield >= config.dividend_yield_min:
        score += 5
        reasons.append(f"배당수익률 충족 ({data.dividend_yield * 100:.2f}%)")

    if data.market_cap is not None and data.market_cap >= config.market_cap_min:
        score += 5
        reasons.append(f"시가총액 충족 (${data.market_cap / 1e9:.1f}B)")

    score = max(0.0, min(100.0, score))

    has_positive_eps = data.eps is not None and data.eps > 0
    action = SignalType.HOLD
    if score >= 50 and has_positive_eps and _pe_favorable(pe, config):
        action = SignalType.BUY
    elif score <= 25:
        action = SignalType.SELL

    return FundamentalSignalResult(
        action=action,
        score=score,
        pe_ratio=pe,
        eps=data.eps,
        eps_growth=data.eps_growth,
        beta=data.beta,
        reasons=reasons,
    )
