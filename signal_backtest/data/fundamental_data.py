"""
펀더멘털 데이터 조회 서비스.

[ 역할 ]
    캐시가 신선하면(기본 7일 이내) 캐시에서, 아니면 제공자에서
    프로필 + 분기 지표를 가져와 병합한 뒤 캐시에 저장.

[ 병합 규칙 ]
    - 분기 지표의 베타/시가총액이 비어 있으면 프로필 값으로 채운다.
    - 분기 지표가 없고 프로필만 있으면 프로필 하나를 결과로 사용.
      (프로필의 report_date는 조회일이므로 과거 구간 백테스트에서는 보이지 않는다)

[ 동시 조회 ]
    API 호출 제한 때문에 batch_size(기본 3) 종목씩 스레드 풀로 조회.

[ 호출하는 곳 ]
    - backtest/runner.py::BacktestRunner
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Optional

from signal_backtest.core.data_provider import FundamentalCache, FundamentalDataProvider
from signal_backtest.core.types import FundamentalData
from signal_backtest.data.memory_cache import MemoryDataCache

logger = logging.getLogger("signal_backtest.data")


class FundamentalDataService:
    """캐시 우선 펀더멘털 조회."""

    def __init__(
        self,
        provider: FundamentalDataProvider,
        cache: Optional[FundamentalCache] = None,
        batch_size: int = 3,
    ):
        self.provider = provider
        self.cache = cache if cache is not None else MemoryDataCache()
        self.batch_size = max(1, batch_size)

    def _read_fresh_cache(self, symbol: str) -> Optional[list[FundamentalData]]:
        try:
            if self.cache.is_fresh(symbol):
                return self.cache.get_cached_fundamentals(symbol)
        except Exception as e:
            logger.warning(f"펀더멘털 캐시 조회 실패 ({symbol}): {e}")
        return None

    def get_fundamentals(self, symbol: str) -> list[FundamentalData]:
        """종목 하나의 펀더멘털 레코드 (report_date 내림차순)."""
        cached = self._read_fresh_cache(symbol)
        if cached:
            logger.debug(f"펀더멘털 캐시 적중: {symbol} ({len(cached)}건)")
            return cached

        profile = self.provider.fetch_profile(symbol)
        quarterly = self.provider.fetch_quarterly_metrics(symbol)

        if profile is not None and quarterly:
            quarterly = [
                replace(
                    record,
                    beta=record.beta if record.beta is not None else profile.beta,
                    market_cap=record.market_cap if record.market_cap is not None else profile.market_cap,
                )
                for record in quarterly
            ]

        if quarterly:
            results = quarterly
        elif profile is not None:
            results = [profile]
        else:
            results = []

        if results:
            try:
                self.cache.cache_fundamentals(symbol, results)
            except Exception as e:
                logger.warning(f"펀더멘털 캐시 저장 실패 ({symbol}): {e}")
        else:
            logger.warning(f"펀더멘털 데이터 없음: {symbol}")
        return results

    def get_multi_fundamentals(self, symbols: list[str]) -> dict[str, list[FundamentalData]]:
        """여러 종목 펀더멘털. batch_size 종목씩 병렬 조회."""
        result: dict[str, list[FundamentalData]] = {}
        with ThreadPoolExecutor(max_workers=self.batch_size) as executor:
            for i in range(0, len(symbols), self.batch_size):
                batch = symbols[i:i + self.batch_size]
                for symbol, data in zip(batch, executor.map(self.get_fundamentals, batch)):
                    result[symbol] = data
        logger.info(f"펀더멘털 조회 완료: {len(symbols)}종목")
        return result
