"""
메모리 캐시.

[ 역할 ]
    DataProvider 앞단에서 동일 데이터 반복 조회를 막는 프로세스 내 캐시.
    ClickHouse를 쓰지 않을 때(database.enabled = false)의 기본 캐시.

[ 캐시 단위 ]
    시세: (symbol, timeframe) → 저장된 DataFrame + 캐시 범위(from, to)
          요청 기간이 캐시 범위 안이면 잘라서 반환.
    펀더멘털: symbol → (레코드 목록, 저장 시각)
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

import pandas as pd

from signal_backtest.core.data_provider import BarCache, FundamentalCache
from signal_backtest.core.types import FundamentalData


@dataclass
class _BarEntry:
    bars: pd.DataFrame
    cached_from: date
    cached_to: date


class MemoryDataCache(BarCache, FundamentalCache):
    """dict 기반 시세 + 펀더멘털 캐시."""

    def __init__(self, fundamental_max_age_days: int = 7):
        self.fundamental_max_age_days = fundamental_max_age_days
        self._bars: dict[tuple[str, str], _BarEntry] = {}
        self._fundamentals: dict[str, tuple[list[FundamentalData], datetime]] = {}

    # ─── 시세 ────────────────────────────────────────────────────────────────

    def is_cached(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> bool:
        entry = self._bars.get((symbol, timeframe))
        if entry is None:
            return False
        return entry.cached_from <= start_date and entry.cached_to >= end_date

    def get_cached_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> Optional[pd.DataFrame]:
        if not self.is_cached(symbol, start_date, end_date, timeframe):
            return None

        df = self._bars[(symbol, timeframe)].bars
        mask = (df["date"] >= start_date) & (df["date"] <= end_date)
        result = df[mask].copy().reset_index(drop=True)
        return result if not result.empty else None

    def cache_bars(
        self,
        symbol: str,
        bars: pd.DataFrame,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> None:
        if bars.empty:
            return
        bars = bars.copy()
        bars["date"] = pd.to_datetime(bars["date"]).dt.date

        # 기존 범위와 겹치면 병합, 아니면 교체
        entry = self._bars.get((symbol, timeframe))
        if entry is not None and start_date <= entry.cached_to and end_date >= entry.cached_from:
            bars = pd.concat([entry.bars, bars])
            start_date = min(start_date, entry.cached_from)
            end_date = max(end_date, entry.cached_to)

        bars = bars.drop_duplicates(subset="date", keep="last").sort_values("date").reset_index(drop=True)
        self._bars[(symbol, timeframe)] = _BarEntry(bars=bars, cached_from=start_date, cached_to=end_date)

    # ─── 펀더멘털 ────────────────────────────────────────────────────────────

    def get_cached_fundamentals(self, symbol: str) -> Optional[list[FundamentalData]]:
        entry = self._fundamentals.get(symbol)
        if entry is None or not entry[0]:
            return None
        return list(entry[0])

    def cache_fundamentals(self, symbol: str, data: list[FundamentalData]) -> None:
        if not data:
            return
        records = sorted(data, key=lambda r: r.report_date or date.min, reverse=True)
        self._fundamentals[symbol] = (records, datetime.now())

    def is_fresh(self, symbol: str, max_age_days: Optional[int] = None) -> bool:
        entry = self._fundamentals.get(symbol)
        if entry is None:
            return False
        max_age = self.fundamental_max_age_days if max_age_days is None else max_age_days
        return datetime.now() - entry[1] < timedelta(days=max_age)

    def clear(self) -> None:
        """캐시 초기화."""
        self._bars.clear()
        self._fundamentals.clear()
