"""
과거 시세 조회 서비스.

[ 역할 ]
    캐시 → 제공자 순으로 시세를 조회하고, 제공자에서 가져온 데이터는 캐시에 저장.
    캐시 조회/저장 실패는 로그만 남기고 제공자 결과로 진행한다.

[ 의존성 ]
    - core/data_provider.py::HistoricalDataProvider (yfinance, 메모리 등)
    - core/data_provider.py::BarCache (메모리, ClickHouse)

[ 호출하는 곳 ]
    - backtest/runner.py::BacktestRunner (워밍업 포함 기간 조회)
"""

import logging
from datetime import date
from typing import Optional

import pandas as pd

from signal_backtest.core.data_provider import BarCache, HistoricalDataProvider
from signal_backtest.core.types import OHLCV_COLUMNS
from signal_backtest.data.memory_cache import MemoryDataCache

logger = logging.getLogger("signal_backtest.data")


class HistoricalDataService:
    """캐시 우선 시세 조회.

    사용 예:
        service = HistoricalDataService(YahooHistoricalProvider())
        bars = service.get_multi_bars(["AAPL", "MSFT"], date(2023, 1, 1), date(2024, 12, 31))
    """

    def __init__(self, provider: HistoricalDataProvider, cache: Optional[BarCache] = None):
        self.provider = provider
        self.cache = cache if cache is not None else MemoryDataCache()

    def _read_cache(self, symbol: str, start_date: date, end_date: date, timeframe: str) -> Optional[pd.DataFrame]:
        try:
            return self.cache.get_cached_bars(symbol, start_date, end_date, timeframe)
        except Exception as e:
            logger.warning(f"캐시 조회 실패 ({symbol}): {e}")
            return None

    def _write_cache(self, symbol: str, bars: pd.DataFrame, start_date: date, end_date: date, timeframe: str) -> None:
        try:
            self.cache.cache_bars(symbol, bars, start_date, end_date, timeframe)
        except Exception as e:
            logger.warning(f"캐시 저장 실패 ({symbol}): {e}")

    def get_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> pd.DataFrame:
        """종목 하나의 시세. 캐시에 요청 기간이 모두 있으면 캐시에서 반환."""
        cached = self._read_cache(symbol, start_date, end_date, timeframe)
        if cached is not None and not cached.empty:
            logger.debug(f"캐시 적중: {symbol} {start_date} ~ {end_date}")
            return cached

        bars = self.provider.fetch_bars(symbol, start_date, end_date, timeframe)
        if bars is None or bars.empty:
            logger.warning(f"시세 데이터 없음: {symbol} {start_date} ~ {end_date}")
            return pd.DataFrame(columns=OHLCV_COLUMNS)

        self._write_cache(symbol, bars, start_date, end_date, timeframe)
        return bars

    def get_multi_bars(
        self,
        symbols: list[str],
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> dict[str, pd.DataFrame]:
        """여러 종목 시세. 입력 순서대로 {symbol: DataFrame}."""
        result: dict[str, pd.DataFrame] = {}
        for symbol in symbols:
            result[symbol] = self.get_bars(symbol, start_date, end_date, timeframe)
        logger.info(
            f"시세 조회 완료: {len(symbols)}종목, "
            f"{sum(len(df) for df in result.values())}봉 ({start_date} ~ {end_date})"
        )
        return result
