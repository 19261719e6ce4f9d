"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    전략 파라미터(기술/펀더멘털/감성/리스크/가중치), 백테스트 기간,
    데이터 수집/캐시, 로깅 설정 등을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    strategy:         → StrategyConfig (종목, 시그널 파라미터, 리스크 한도)
      technical:      → TechnicalConfig
      fundamental:    → FundamentalConfig
      sentiment:      → SentimentConfig
      risk:           → RiskConfig
      weights:        → SignalWeights
    backtest:         → BacktestConfig (기간, 워밍업, 무위험수익률)
    database:         → DatabaseConfig (ClickHouse 캐시)
    data:             → DataConfig (재시도, 캐시 신선도)
    comparisons:      → 비교 실행용 전략 목록 [{label, strategy: {...}}]
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

[ 호출하는 곳 ]
    - run_backtest.py에서 Config.from_yaml()로 로드
    - signals/*.py 는 각자 자신의 설정 타입만 받는다 (TechnicalConfig 등)
    - backtest/runner.py 는 StrategyConfig + BacktestConfig를 사용

[ 주의 ]
    엔진은 설정 객체를 읽기만 한다. 변경이 필요하면 dataclasses.replace()로 복사본을 만든다.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass
class TechnicalConfig:
    """기술적 분석 파라미터. strategy.technical 섹션에 대응."""
    rsi_period: int = 14
    rsi_overbought: float = 70
    rsi_oversold: float = 30
    sma_short_period: int = 50
    sma_long_period: int = 200
    sma_trend_period: int = 20


@dataclass
class FundamentalConfig:
    """펀더멘털 분석 파라미터. strategy.fundamental 섹션에 대응."""
    pe_ratio_max: float = 35
    pe_ratio_min: float = 5
    eps_growth_min: float = 0
    beta_max: float = 2.0
    dividend_yield_min: float = 0
    market_cap_min: float = 1_000_000_000


@dataclass
class SentimentConfig:
    """뉴스 감성 파라미터. 백테스트에서는 항상 비활성.

    social_score_threshold는 설정 파일 호환용으로만 받는다 (소셜 감성 소스 없음).
    """
    enabled: bool = False
    news_score_threshold: float = 50
    social_score_threshold: float = 50      # 읽지 않음


@dataclass
class RiskConfig:
    """리스크 한도. 익절/손절 값이 None이면 해당 조건을 사용하지 않는다.

    max_portfolio_risk_percent는 설정 파일 호환용으로만 받는다.
    비중 제한은 max_position_size_percent / max_open_positions로만 적용된다.
    """
    take_profit_percent: Optional[float] = 15
    stop_loss_percent: Optional[float] = 7
    max_position_size_percent: float = 20   # 종목당 최대 비중 (포트폴리오 대비 %)
    max_open_positions: int = 5
    max_portfolio_risk_percent: float = 50   # 읽지 않음


@dataclass
class SignalWeights:
    """시그널 소스별 가중치 (원본 값, combiner에서 합이 100이 되도록 정규화)."""
    technical: float = 40
    fundamental: float = 35
    sentiment: float = 25


def _build(cls, data: Optional[dict[str, Any]]):
    """dict에서 dataclass 생성. 알 수 없는 키는 무시."""
    data = data or {}
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class StrategyConfig:
    """전략 설정. config.yaml의 strategy 섹션에 대응.

    entry_policy는 strategies/ 레지스트리에 등록된 이름:
        "signals"      - 시그널 조합 결과대로 매수/매도 (기본)
        "buy_and_hold" - 첫 평가일에 무조건 매수 후 기간 끝까지 보유 (벤치마크용)
    """
    name: str = "My Strategy"
    description: str = ""
    symbols: list[str] = field(default_factory=lambda: ["AAPL"])
    technical: TechnicalConfig = field(default_factory=TechnicalConfig)
    fundamental: FundamentalConfig = field(default_factory=FundamentalConfig)
    sentiment: SentimentConfig = field(default_factory=SentimentConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    weights: SignalWeights = field(default_factory=SignalWeights)
    initial_capital: float = 100_000
    entry_policy: str = "signals"

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "StrategyConfig":
        data = dict(data or {})
        base = _build(cls, {
            k: v for k, v in data.items()
            if k not in ("technical", "fundamental", "sentiment", "risk", "weights")
        })
        base.technical = _build(TechnicalConfig, data.get("technical"))
        base.fundamental = _build(FundamentalConfig, data.get("fundamental"))
        base.sentiment = _build(SentimentConfig, data.get("sentiment"))
        base.risk = _build(RiskConfig, data.get("risk"))
        base.weights = _build(SignalWeights, data.get("weights"))
        base.symbols = [str(s).upper() for s in base.symbols]
        return base

    def validate(self) -> None:
        """설정 검증. 잘못된 값이면 ValueError."""
        if not self.symbols:
            raise ValueError("symbols가 비어 있습니다.")
        if len(set(self.symbols)) != len(self.symbols):
            raise ValueError(f"중복된 종목이 있습니다: {self.symbols}")
        if self.initial_capital <= 0:
            raise ValueError(f"initial_capital은 0보다 커야 합니다: {self.initial_capital}")

        t = self.technical
        for name in ("rsi_period", "sma_short_period", "sma_long_period", "sma_trend_period"):
            if getattr(t, name) < 1:
                raise ValueError(f"technical.{name}은 1 이상이어야 합니다: {getattr(t, name)}")

        w = self.weights
        if min(w.technical, w.fundamental, w.sentiment) < 0:
            raise ValueError("weights에 음수가 있습니다.")
        if w.technical + w.fundamental <= 0:
            raise ValueError("technical + fundamental 가중치 합이 0입니다.")

        r = self.risk
        if not 0 < r.max_position_size_percent <= 100:
            raise ValueError(f"max_position_size_percent 범위 오류: {r.max_position_size_percent}")
        if r.max_open_positions < 1:
            raise ValueError(f"max_open_positions는 1 이상이어야 합니다: {r.max_open_positions}")


@dataclass
class BacktestConfig:
    """백테스트 설정. config.yaml의 backtest 섹션에 대응."""
    start_date: str = "2024-01-01"
    end_date: str = "2024-12-31"
    warmup_months: int = 14          # 지표 계산용 사전 데이터 (SMA200 → 200거래일 이상)
    timeframe: str = "1Day"
    risk_free_rate: float = 0.05     # 샤프 비율 계산용 연 무위험수익률


@dataclass
class DatabaseConfig:
    """ClickHouse 캐시 설정. enabled=False면 메모리 캐시 사용."""
    enabled: bool = False
    host: str = "localhost"
    port: int = 8123
    database: str = "default"
    user: str = "default"
    password: str = "password"


@dataclass
class DataConfig:
    """데이터 수집/캐시 설정. config.yaml의 data 섹션에 대응."""
    max_retries: int = 3
    retry_delay: int = 5
    use_adjusted_close: bool = True
    fundamental_cache_max_age_days: int = 7
    price_cache_staleness_days: int = 1
    report_lag_days: int = 45         # 분기 종료일 → 실적 공개일 추정 지연
    fundamental_batch_size: int = 3   # 동시 조회 종목 수 (API 호출 제한 대응)


@dataclass
class ComparisonConfig:
    """비교 실행용 전략 하나. strategy는 기본 strategy 섹션 위에 덮어쓴다."""
    label: str
    strategy: StrategyConfig


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    data: DataConfig = field(default_factory=DataConfig)
    comparisons: list[ComparisonConfig] = field(default_factory=list)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성."""
        strategy_data = data.get("strategy", {}) or {}
        strategy = StrategyConfig.from_dict(strategy_data)

        # 비교 전략: 기본 strategy 섹션을 깔고 항목별 값으로 덮어씀 (중첩 섹션은 키 단위 병합)
        comparisons = []
        for item in data.get("comparisons", []) or []:
            merged = merge_overrides(strategy_data, item.get("strategy", {}) or {})
            label = item.get("label") or merged.get("name") or f"Strategy {len(comparisons) + 1}"
            comparisons.append(ComparisonConfig(label=label, strategy=StrategyConfig.from_dict(merged)))

        return cls(
            strategy=strategy,
            backtest=_build(BacktestConfig, data.get("backtest")),
            database=_build(DatabaseConfig, data.get("database")),
            data=_build(DataConfig, data.get("data")),
            comparisons=comparisons,
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)


def merge_overrides(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """중첩 dict 병합. overrides 값이 우선."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_overrides(merged[key], value)
        else:
            merged[key] = value
    return merged
