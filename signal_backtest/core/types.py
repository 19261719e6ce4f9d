"""
백테스트 엔진 공용 타입 정의.

[ 역할 ]
    시세/펀더멘털/뉴스 데이터, 시그널 결과, 포지션/거래기록,
    일별 포트폴리오 스냅샷, 진행상황 콜백 타입을 한 곳에 정의.
    엔진 내부 모듈은 서로의 구현 대신 이 타입들만 주고받는다.

[ 데이터 흐름 ]
    OHLCV DataFrame + FundamentalData
        → signals/technical.py, signals/fundamental.py (시그널 결과)
        → signals/combiner.py (CombinedSignal)
        → backtest/position_tracker.py (Position → ClosedTrade)
        → backtest/simulator.py (PortfolioSnapshot)
        → backtest/metrics.py, backtest/attribution.py

[ 불변 규칙 ]
    - ClosedTrade, PortfolioSnapshot, CombinedSignal 은 생성 후 수정 불가 (frozen)
    - FundamentalData.report_date 는 "해당 데이터가 공개된 날짜" (미래 데이터 누출 방지용)
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Optional


# ─── 시장 데이터 ─────────────────────────────────────────────────────────────

# 시세 DataFrame 컬럼. 한 행 = 일봉 하나 (date는 datetime.date, 날짜 오름차순)
OHLCV_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


@dataclass
class FundamentalData:
    """분기별(또는 프로필) 펀더멘털 지표. 값이 없으면 None."""
    symbol: str
    pe_ratio: Optional[float] = None
    eps: Optional[float] = None
    eps_growth: Optional[float] = None       # 비율 (0.10 = 10%)
    beta: Optional[float] = None
    dividend_yield: Optional[float] = None   # 비율 (0.02 = 2%)
    market_cap: Optional[float] = None
    report_date: Optional[date] = None       # 공개일 (이 날짜 이후에만 사용 가능)


@dataclass
class SentimentData:
    """뉴스 감성 데이터. 과거 시점 재현이 불가능하므로 백테스트에는 사용하지 않음."""
    symbol: str
    score: float              # 0~100 (50 = 중립)
    raw_score: float          # -1 ~ +1
    label: str                # "bullish" / "bearish" / "neutral"
    article_count: int
    fetched_at: Optional[date] = None


# ─── 시그널 ─────────────────────────────────────────────────────────────────

class SignalType(Enum):
    """시그널 종류."""
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass
class TechnicalSignalResult:
    """RSI + SMA 기반 기술적 시그널."""
    action: SignalType
    score: float              # 0~100
    rsi_value: float
    sma_short: float
    sma_long: float
    sma_trend: float
    current_price: float
    reasons: list[str] = field(default_factory=list)


@dataclass
class FundamentalSignalResult:
    """PE/EPS/베타/배당 기반 펀더멘털 시그널."""
    action: SignalType
    score: float
    pe_ratio: Optional[float] = None
    eps: Optional[float] = None
    eps_growth: Optional[float] = None
    beta: Optional[float] = None
    reasons: list[str] = field(default_factory=list)


@dataclass
class SentimentSignalResult:
    """뉴스 감성 시그널 (실전 매매 봇 전용)."""
    action: SignalType
    score: float
    sentiment_label: str = "neutral"
    article_count: int = 0
    reasons: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CombinedSignal:
    """combiner가 만든 최종 판단. 진입 시 Position에 그대로 보존되어 기여도 분석에 쓰인다."""
    action: SignalType
    total_score: float
    technical_score: float
    fundamental_score: float
    technical_weight: float        # 정규화 후 가중치 (%)
    fundamental_weight: float
    technical_action: SignalType
    fundamental_action: SignalType
    reasons: tuple[str, ...] = ()
    vetoed: bool = False
    veto_reason: Optional[str] = None
    sentiment_score: Optional[float] = None
    sentiment_weight: float = 0.0
    sentiment_action: Optional[SignalType] = None


@dataclass(frozen=True)
class SignalRecord:
    """종목별 시그널 이력의 한 항목."""
    date: date
    signal: CombinedSignal


# ─── 포지션 / 거래 ───────────────────────────────────────────────────────────

class ExitReason(Enum):
    """청산 사유."""
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    SIGNAL_SELL = "signal_sell"
    END_OF_PERIOD = "end_of_period"


@dataclass
class Position:
    """보유 중인 롱 포지션. 종목당 하나만 존재."""
    id: str
    symbol: str
    entry_date: date
    entry_price: float
    quantity: int
    signal_at_entry: CombinedSignal
    side: str = "long"


@dataclass(frozen=True)
class ClosedTrade:
    """청산 완료된 거래 (진입 ~ 청산 한 사이클)."""
    id: str
    symbol: str
    entry_date: date
    entry_price: float
    exit_date: date
    exit_price: float
    quantity: int
    pnl: float
    pnl_percent: float
    holding_days: int         # 최소 1
    exit_reason: ExitReason
    signal_at_entry: CombinedSignal
    side: str = "long"


@dataclass(frozen=True)
class PortfolioSnapshot:
    """거래일 하나의 포트폴리오 상태."""
    date: date
    equity: float             # 현금 + 보유 포지션 평가액
    cash: float
    positions_value: float
    open_position_count: int


# ─── 진행상황 콜백 ───────────────────────────────────────────────────────────

class ProgressPhase(Enum):
    FETCHING_PRICES = "fetching_prices"
    FETCHING_FUNDAMENTALS = "fetching_fundamentals"
    SIMULATING = "simulating"
    CALCULATING_METRICS = "calculating_metrics"
    COMPLETE = "complete"


@dataclass
class BacktestProgress:
    phase: ProgressPhase
    current: int
    total: int
    message: str = ""


ProgressCallback = Callable[[BacktestProgress], None]
