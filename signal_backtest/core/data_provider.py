"""
시세/펀더멘털 데이터 제공 및 캐시 추상 클래스 정의.

[ 역할 ]
    백테스트 엔진이 외부 데이터 소스(API, DB, 파일)에 독립적이도록
    데이터 조회/캐시 인터페이스를 정의.

[ 구현체 ]
    제공자:
    - ingestion/yahoo_finance.py::YahooHistoricalProvider   (yfinance 일봉)
    - ingestion/yahoo_finance.py::YahooFundamentalProvider  (yfinance 프로필/분기 재무)
    - data/frame_provider.py::FrameDataProvider             (메모리 DataFrame, 샘플/테스트용)
    캐시:
    - data/memory_cache.py::MemoryDataCache                 (프로세스 내 dict)
    - data/clickhouse_cache.py::ClickHouseDataCache         (ClickHouse 영구 캐시)

[ 호출하는 곳 ]
    - data/historical_data.py::HistoricalDataService (캐시 → 제공자 순으로 조회)
    - data/fundamental_data.py::FundamentalDataService
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

import pandas as pd

from signal_backtest.core.types import FundamentalData


class HistoricalDataProvider(ABC):
    """과거 시세 제공 추상 클래스."""

    @abstractmethod
    def fetch_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> pd.DataFrame:
        """OHLCV 데이터 조회.

        Args:
            symbol: 종목 코드
            start_date: 시작일 (포함)
            end_date: 종료일 (포함)
            timeframe: 봉 단위 ("1Day"만 지원)

        Returns:
            DataFrame with columns: [date, open, high, low, close, volume]
            날짜 오름차순, 날짜 중복 없음. 데이터가 없으면 빈 DataFrame.
        """
        ...


class FundamentalDataProvider(ABC):
    """펀더멘털 데이터 제공 추상 클래스."""

    @abstractmethod
    def fetch_profile(self, symbol: str) -> Optional[FundamentalData]:
        """현재 시점 회사 프로필 (베타, 시가총액, 배당 등). 실패 시 None."""
        ...

    @abstractmethod
    def fetch_quarterly_metrics(self, symbol: str) -> list[FundamentalData]:
        """분기별 지표 목록. report_date 내림차순."""
        ...


class BarCache(ABC):
    """시세 캐시 추상 클래스. (symbol, timeframe, 기간) 단위로 저장/조회."""

    @abstractmethod
    def get_cached_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> Optional[pd.DataFrame]:
        """요청 기간 전체가 캐시되어 있으면 DataFrame, 아니면 None."""
        ...

    @abstractmethod
    def cache_bars(
        self,
        symbol: str,
        bars: pd.DataFrame,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> None:
        """시세 저장 + 캐시 범위 기록."""
        ...

    @abstractmethod
    def is_cached(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> bool:
        """요청 기간이 캐시 범위에 완전히 포함되는지."""
        ...


class FundamentalCache(ABC):
    """펀더멘털 캐시 추상 클래스."""

    @abstractmethod
    def get_cached_fundamentals(self, symbol: str) -> Optional[list[FundamentalData]]:
        """캐시된 레코드 (report_date 내림차순). 없으면 None."""
        ...

    @abstractmethod
    def cache_fundamentals(self, symbol: str, data: list[FundamentalData]) -> None:
        ...

    @abstractmethod
    def is_fresh(self, symbol: str, max_age_days: Optional[int] = None) -> bool:
        """마지막 저장 후 max_age_days 이내인지."""
        ...
