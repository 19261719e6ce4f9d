"""
전략 성적 평가 모듈.

[ 역할 ]
    BacktestMetrics를 0~100 종합 점수와 학점(A+ ~ F)으로 변환하고,
    규칙 기반 인사이트(강점/약점/관찰/제안)를 우선순위 순으로 생성.

[ 채점 방식 ]
    1. 지표별 구간 선형 정규화 (min→0, low→40, mid→70, high→100)
    2. 가중 평균: 샤프 25%, 수익률 20%, MDD 20%, 승률 15%, 수익팩터 15%, 거래수 5%
    3. 반올림한 종합 점수 → 학점

[ 호출하는 곳 ]
    - run_backtest.py --grade 옵션
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from signal_backtest.backtest.metrics import BacktestMetrics


@dataclass
class MetricBreakdown:
    """지표 하나의 채점 결과."""
    key: str
    label: str
    raw_value: float
    normalized_score: int    # 0~100
    weight: float
    grade: str               # Excellent / Good / Average / Poor


@dataclass
class Insight:
    type: str                # strength / weakness / observation / suggestion
    title: str
    body: str
    priority: int            # 1이 가장 높음


@dataclass
class GradeResult:
    letter: str
    score: int
    breakdown: list[MetricBreakdown] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def summary(self) -> str:
        lines = [
            "=" * 50,
            f"전략 평가: {self.letter} ({self.score}/100)",
            "=" * 50,
        ]
        for b in self.breakdown:
            lines.append(
                f"{b.label:<15} {b.raw_value:>10.2f}  →  {b.normalized_score:>3d}점 "
                f"(가중치 {b.weight * 100:.0f}%, {b.grade})"
            )
        if self.insights:
            lines.append("-" * 50)
            for insight in self.insights:
                lines.append(f"[{insight.type}] {insight.title}")
                lines.append(f"    {insight.body}")
        lines.append("=" * 50)
        return "\n".join(lines)


@dataclass
class BenchmarkComparison:
    strategy_return: float
    benchmark_return: float
    alpha: float
    verdict: str


# ─── 채점 기준 ───────────────────────────────────────────────────────────────

METRIC_WEIGHTS = [
    ("sharpe_ratio", "Sharpe Ratio", 0.25),
    ("total_return", "Total Return", 0.20),
    ("max_drawdown", "Max Drawdown", 0.20),
    ("win_rate", "Win Rate", 0.15),
    ("profit_factor", "Profit Factor", 0.15),
    ("total_trades", "Trade Count", 0.05),
]

# (min, low, mid, high) → (0, 40, 70, 100)
NORM_RANGES = {
    "sharpe_ratio": (-1.0, 0.0, 1.0, 3.0),
    "total_return": (-20, 0, 15, 50),
    "max_drawdown": (-50, -25, -10, 0),    # 덜 음수일수록 좋음
    "win_rate": (20, 40, 55, 75),
    "profit_factor": (0, 1.0, 1.5, 3.0),
    "total_trades": (0, 10, 30, 60),
}

# 무한대 수익팩터를 채점할 때 쓰는 대체값
INFINITE_PROFIT_FACTOR_SCORE_VALUE = 5.0

LETTER_CUTOFFS = [
    (97, "A+"), (93, "A"), (90, "A-"),
    (87, "B+"), (83, "B"), (80, "B-"),
    (77, "C+"), (73, "C"), (70, "C-"),
    (65, "D+"), (55, "D"),
]

OPPORTUNITY_TIPS = {
    "sharpe_ratio": "종목당 비중을 줄이거나 손절을 추가하고, 종목을 분산해 위험 대비 수익을 개선하세요.",
    "total_return": "익절 기준을 완화하거나 진입 시점을 개선하고, 추세가 강한 종목으로 테스트해 보세요.",
    "max_drawdown": "5~7% 손절을 설정하고, 연속 손실 구간에서는 비중을 줄이세요.",
    "win_rate": "RSI + 거래량 같은 확인 필터를 추가해 확신이 낮은 진입을 줄이세요.",
    "profit_factor": "큰 손실 거래를 줄이도록 손절을 좁히고 익절 목표를 넓혀 보세요.",
    "total_trades": "기간을 늘리거나 종목을 추가하고, 진입 조건을 완화해 표본을 늘리세요.",
}


def piecewise_normalize(value: float, norm_range: tuple[float, float, float, float]) -> float:
    """구간 선형 정규화 (0~100)."""
    lo_min, low, mid, high = norm_range
    if value <= lo_min:
        return 0.0
    if value >= high:
        return 100.0
    if value <= low:
        return 40 * (value - lo_min) / (low - lo_min)
    if value <= mid:
        return 40 + 30 * (value - low) / (mid - low)
    return 70 + 30 * (value - mid) / (high - mid)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _grade_label(score: float) -> str:
    if score >= 90:
        return "Excellent"
    if score >= 70:
        return "Good"
    if score >= 50:
        return "Average"
    return "Poor"


def composite_to_letter(score: float) -> str:
    for cutoff, letter in LETTER_CUTOFFS:
        if score >= cutoff:
            return letter
    return "F"


def _metric_value(metrics: BacktestMetrics, key: str) -> float:
    value = float(getattr(metrics, key))
    if key == "profit_factor" and math.isinf(value):
        return INFINITE_PROFIT_FACTOR_SCORE_VALUE
    return value


def grade_strategy(metrics: BacktestMetrics) -> GradeResult:
    """성과 지표를 종합 점수/학점/인사이트로 변환."""
    breakdown: list[MetricBreakdown] = []
    weighted_sum = 0.0

    for key, label, weight in METRIC_WEIGHTS:
        raw_value = _metric_value(metrics, key)
        normalized = piecewise_normalize(raw_value, NORM_RANGES[key])
        weighted_sum += normalized * weight
        breakdown.append(MetricBreakdown(
            key=key,
            label=label,
            raw_value=raw_value,
            normalized_score=_round_half_up(normalized),
            weight=weight,
            grade=_grade_label(normalized),
        ))

    score = _round_half_up(weighted_sum)
    return GradeResult(
        letter=composite_to_letter(score),
        score=score,
        breakdown=breakdown,
        insights=generate_insights(metrics, breakdown),
    )


def generate_insights(m: BacktestMetrics, breakdown: list[MetricBreakdown]) -> list[Insight]:
    """규칙 기반 인사이트. priority 오름차순으로 정렬하여 반환."""
    insights: list[Insight] = []
    pf_finite = not math.isinf(m.profit_factor)

    # 가장 약한 지표
    if breakdown:
        weakest = min(breakdown, key=lambda b: b.normalized_score)
        insights.append(Insight(
            type="suggestion",
            title=f"가장 큰 개선 기회: {weakest.label}",
            body=(
                f"{weakest.label} 점수가 {weakest.normalized_score}/100으로 가장 낮습니다 "
                f"(평가 가중치 {weakest.weight * 100:.0f}%). {OPPORTUNITY_TIPS[weakest.key]}"
            ),
            priority=1,
        ))

    # ─── 강점 ─────────────────────────────────────────────────────────────
    if m.sharpe_ratio >= 2.0:
        insights.append(Insight("strength", "매우 우수한 위험 대비 수익",
                                f"샤프 비율 {m.sharpe_ratio:.2f}는 예외적으로 높은 수준입니다.", 1))
    elif m.sharpe_ratio >= 1.0:
        insights.append(Insight("strength", "양호한 위험 대비 수익",
                                f"샤프 비율 {m.sharpe_ratio:.2f}는 안정적인 위험 대비 성과입니다.", 2))

    if m.win_rate >= 65:
        insights.append(Insight("strength", "높은 승률",
                                f"거래의 {m.win_rate:.0f}%가 수익으로 끝났습니다. 진입 시그널이 정확합니다.", 2))

    if m.max_drawdown > -10:
        insights.append(Insight("strength", "낙폭 관리 양호",
                                f"최대 낙폭 {m.max_drawdown:.1f}%로 리스크 관리가 잘 되고 있습니다.", 2))

    if pf_finite and m.profit_factor >= 2.5:
        insights.append(Insight("strength", "강한 수익 팩터",
                                f"손실 $1당 ${m.profit_factor:.2f}를 벌고 있습니다.", 2))

    if m.total_return >= 25:
        insights.append(Insight("strength", "높은 총 수익률",
                                f"총 수익률 {m.total_return:.1f}%는 시장 평균(연 ~10%)을 크게 상회합니다.", 3))

    # ─── 약점 ─────────────────────────────────────────────────────────────
    if m.sharpe_ratio < 0:
        insights.append(Insight("weakness", "음의 위험 대비 수익",
                                f"샤프 비율 {m.sharpe_ratio:.2f}: 무위험 자산보다 못한 성과입니다. "
                                "시그널 로직이나 리스크 설정을 재검토하세요.", 1))

    if m.max_drawdown <= -25:
        recovery = 100 / (100 + m.max_drawdown) * 100 - 100 if m.max_drawdown > -100 else float("inf")
        insights.append(Insight("weakness", "큰 낙폭 위험",
                                f"{m.max_drawdown:.1f}% 낙폭을 회복하려면 {recovery:.0f}% 상승이 필요합니다.", 1))
    elif m.max_drawdown <= -15:
        insights.append(Insight("weakness", "중간 수준 낙폭",
                                f"{m.max_drawdown:.1f}% 낙폭. 손절을 좁히거나 비중을 줄여 보세요.", 3))

    if pf_finite and m.profit_factor < 1.0 and m.total_trades > 0:
        insights.append(Insight("weakness", "거래 우위 없음",
                                f"수익 팩터 {m.profit_factor:.2f} (< 1.0): 손실이 이익보다 큽니다.", 1))

    if m.win_rate < 40 and m.total_trades >= 10:
        insights.append(Insight("weakness", "낮은 승률",
                                f"수익 거래가 {m.win_rate:.0f}%에 불과합니다.", 2))
        if m.avg_win_percent > 0 and m.avg_loss_percent < 0:
            reward_risk = m.avg_win_percent / abs(m.avg_loss_percent)
            if reward_risk < 1.5:
                insights.append(Insight("suggestion", "진입 품질 개선",
                                        f"손익비 {reward_risk:.1f}:1은 승률 {m.win_rate:.0f}%에 비해 너무 낮습니다. "
                                        "확인 지표를 추가해 진입 품질을 높이세요.", 2))

    if m.total_return < 0:
        insights.append(Insight("weakness", "손실",
                                f"전체 {abs(m.total_return):.1f}% 손실. 진입/청산 규칙과 리스크 관리를 점검하세요.", 1))

    # ─── 관찰 ─────────────────────────────────────────────────────────────
    if m.total_trades < 10:
        insights.append(Insight("observation", "거래 수 매우 적음",
                                f"거래 {m.total_trades}건은 통계적으로 신뢰하기 어렵습니다.", 2))
    elif m.total_trades < 20:
        insights.append(Insight("observation", "제한된 표본",
                                f"거래 {m.total_trades}건. 30건 이상이 되도록 기간을 늘려 보세요.", 3))

    if m.avg_holding_days <= 2 and m.total_trades > 5:
        insights.append(Insight("observation", "단기 매매 패턴",
                                f"평균 보유 {m.avg_holding_days:.1f}일. 실거래에서는 슬리피지/수수료 영향이 큽니다.", 3))

    if m.avg_win_percent > 0 and m.avg_loss_percent < 0:
        reward_risk = m.avg_win_percent / abs(m.avg_loss_percent)
        if reward_risk < 1:
            insights.append(Insight("observation", "손익 크기 비대칭",
                                    f"평균 수익(+{m.avg_win_percent:.1f}%)이 평균 손실({m.avg_loss_percent:.1f}%)보다 작습니다.", 3))
        elif reward_risk >= 2:
            insights.append(Insight("strength", "유리한 손익비",
                                    f"평균 수익이 평균 손실의 {reward_risk:.1f}배입니다.", 3))

    # ─── 제안 ─────────────────────────────────────────────────────────────
    if m.max_drawdown <= -15:
        suggested_stop = max(3, _round_half_up(abs(m.max_drawdown) * 0.6))
        insights.append(Insight("suggestion", "손절 기준 강화",
                                f"최대 낙폭 {m.max_drawdown:.1f}%. 손절을 {suggested_stop}%로 설정해 보세요.", 3))

    if m.total_trades < 20:
        insights.append(Insight("suggestion", "백테스트 기간 연장",
                                "1~2년 이상(또는 거래 30건 이상)으로 기간을 늘려 상승/하락장을 모두 포함하세요.", 3))

    if m.sharpe_ratio < 0.8 and m.max_drawdown <= -20:
        insights.append(Insight("suggestion", "포지션 크기 축소",
                                "종목당 비중을 현재의 50~70%로 줄여 수익 곡선을 완만하게 만드세요.", 2))

    if m.total_return > 0 and m.sharpe_ratio < 0.5:
        insights.append(Insight("suggestion", "변동성 축소",
                                f"수익(+{m.total_return:.1f}%)은 났지만 샤프 {m.sharpe_ratio:.2f}로 변동성이 큽니다.", 3))

    insights.sort(key=lambda i: i.priority)
    return insights


def compare_to_benchmark(
    metrics: BacktestMetrics,
    benchmark_return: Optional[float],
) -> Optional[BenchmarkComparison]:
    """벤치마크(Buy & Hold 등) 총 수익률 대비 초과 수익 평가."""
    if benchmark_return is None:
        return None

    alpha = metrics.total_return - benchmark_return
    if alpha > 10:
        verdict = "벤치마크 대비 크게 우수"
    elif alpha > 3:
        verdict = "벤치마크 대비 우수"
    elif alpha > -3:
        verdict = "벤치마크와 비슷"
    elif alpha > -10:
        verdict = "벤치마크 대비 부진"
    else:
        verdict = "벤치마크 대비 크게 부진"

    return BenchmarkComparison(
        strategy_return=metrics.total_return,
        benchmark_return=benchmark_return,
        alpha=alpha,
        verdict=verdict,
    )
