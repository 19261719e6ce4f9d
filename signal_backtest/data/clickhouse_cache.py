"""
ClickHouse 기반 캐시 구현.

[ 역할 ]
    yfinance 등에서 받은 시세/펀더멘털을 ClickHouse에 저장해 두고
    다음 실행에서 재사용. BarCache / FundamentalCache 인터페이스 구현.

[ 캐시 판정 ]
    시세: price_cache_coverage의 [cached_from, cached_to]가 요청 기간을 포함해야 함.
          요청 종료일이 최근(price_cache_staleness_days 이내)이면 마지막 조회 시각도
          그 기간 안이어야 함 (장 마감 후 새 봉 반영).
    펀더멘털: 마지막 저장 시각이 fundamental_max_age_days 이내여야 함.

[ 의존성 ]
    - ingestion/clickhouse_schema.py (연결 및 스키마)

[ 호출하는 곳 ]
    - run_backtest.py (database.enabled = true 일 때)
"""

from datetime import date, datetime, timedelta
from typing import Optional

import pandas as pd
from clickhouse_connect.driver import Client

from signal_backtest.core.data_provider import BarCache, FundamentalCache
from signal_backtest.core.types import OHLCV_COLUMNS, FundamentalData
from signal_backtest.ingestion.clickhouse_schema import (
    COVERAGE_TABLE,
    FUNDAMENTAL_TABLE,
    PRICE_BARS_TABLE,
    get_client,
    initialize_schema,
)
from signal_backtest.utils.config import DatabaseConfig, DataConfig

FUNDAMENTAL_COLUMNS = [
    "symbol", "report_date", "pe_ratio", "eps", "eps_growth",
    "beta", "dividend_yield", "market_cap", "fetched_at",
]


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


class ClickHouseDataCache(BarCache, FundamentalCache):
    """ClickHouse 시세 + 펀더멘털 캐시.

    사용 예:
        cache = ClickHouseDataCache.from_config(config.database, config.data)
        service = HistoricalDataService(YahooHistoricalProvider(), cache)
    """

    def __init__(
        self,
        client: Client,
        price_cache_staleness_days: int = 1,
        fundamental_max_age_days: int = 7,
    ):
        self.client = client
        self.price_cache_staleness_days = price_cache_staleness_days
        self.fundamental_max_age_days = fundamental_max_age_days

    @classmethod
    def from_config(cls, database: DatabaseConfig, data: DataConfig) -> "ClickHouseDataCache":
        """설정으로 연결하고 스키마를 준비."""
        client = get_client(database.host, database.port, database.database, database.user, database.password)
        initialize_schema(client)
        return cls(
            client,
            price_cache_staleness_days=data.price_cache_staleness_days,
            fundamental_max_age_days=data.fundamental_cache_max_age_days,
        )

    # ─── 시세 ────────────────────────────────────────────────────────────────

    def _coverage(self, symbol: str, timeframe: str) -> Optional[tuple[date, date, datetime]]:
        result = self.client.query(
            f"""
            SELECT cached_from, cached_to, last_fetched_at
            FROM {COVERAGE_TABLE} FINAL
            WHERE symbol = %(symbol)s AND timeframe = %(timeframe)s
            ORDER BY last_fetched_at DESC
            LIMIT 1
            """,
            parameters={"symbol": symbol, "timeframe": timeframe},
        )
        if not result.result_rows:
            return None
        cached_from, cached_to, last_fetched_at = result.result_rows[0]
        return cached_from, cached_to, _naive(last_fetched_at)

    def is_cached(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> bool:
        coverage = self._coverage(symbol, timeframe)
        if coverage is None:
            return False
        cached_from, cached_to, last_fetched_at = coverage
        if not (cached_from <= start_date and cached_to >= end_date):
            return False

        staleness = timedelta(days=self.price_cache_staleness_days)
        if end_date >= date.today() - staleness:
            return datetime.now() - last_fetched_at < staleness
        return True

    def get_cached_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> Optional[pd.DataFrame]:
        if not self.is_cached(symbol, start_date, end_date, timeframe):
            return None

        result = self.client.query(
            f"""
            SELECT date, open, high, low, close, volume
            FROM {PRICE_BARS_TABLE} FINAL
            WHERE symbol = %(symbol)s
              AND timeframe = %(timeframe)s
              AND date >= %(start_date)s
              AND date <= %(end_date)s
            ORDER BY date ASC
            """,
            parameters={
                "symbol": symbol,
                "timeframe": timeframe,
                "start_date": start_date,
                "end_date": end_date,
            },
        )
        if not result.result_rows:
            return None
        return pd.DataFrame(result.result_rows, columns=OHLCV_COLUMNS)

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

        dates = pd.to_datetime(bars["date"]).dt.date
        rows = [
            [symbol, timeframe, d, float(o), float(h), float(lo), float(c), int(v)]
            for d, o, h, lo, c, v in zip(
                dates, bars["open"], bars["high"], bars["low"], bars["close"], bars["volume"]
            )
        ]
        self.client.insert(
            PRICE_BARS_TABLE,
            rows,
            column_names=["symbol", "timeframe", "date", "open", "high", "low", "close", "volume"],
        )

        # 기존 캐시 범위와 겹치면 합쳐서 기록
        coverage = self._coverage(symbol, timeframe)
        if coverage is not None:
            cached_from, cached_to, _ = coverage
            if start_date <= cached_to and end_date >= cached_from:
                start_date = min(start_date, cached_from)
                end_date = max(end_date, cached_to)

        self.client.insert(
            COVERAGE_TABLE,
            [[symbol, timeframe, start_date, end_date, len(rows), datetime.now()]],
            column_names=["symbol", "timeframe", "cached_from", "cached_to", "row_count", "last_fetched_at"],
        )

    # ─── 펀더멘털 ────────────────────────────────────────────────────────────

    def get_cached_fundamentals(self, symbol: str) -> Optional[list[FundamentalData]]:
        result = self.client.query(
            f"""
            SELECT report_date, pe_ratio, eps, eps_growth, beta, dividend_yield, market_cap
            FROM {FUNDAMENTAL_TABLE} FINAL
            WHERE symbol = %(symbol)s
            ORDER BY report_date DESC
            """,
            parameters={"symbol": symbol},
        )
        if not result.result_rows:
            return None
        return [
            FundamentalData(
                symbol=symbol,
                report_date=row[0],
                pe_ratio=row[1],
                eps=row[2],
                eps_growth=row[3],
                beta=row[4],
                dividend_yield=row[5],
                market_cap=row[6],
            )
            for row in result.result_rows
        ]

    def cache_fundamentals(self, symbol: str, data: list[FundamentalData]) -> None:
        fetched_at = datetime.now()
        rows = [
            [
                symbol, f.report_date, f.pe_ratio, f.eps, f.eps_growth,
                f.beta, f.dividend_yield, f.market_cap, fetched_at,
            ]
            for f in data
            if f.report_date is not None
        ]
        if rows:
            self.client.insert(FUNDAMENTAL_TABLE, rows, column_names=FUNDAMENTAL_COLUMNS)

    def is_fresh(self, symbol: str, max_age_days: Optional[int] = None) -> bool:
        result = self.client.query(
            f"SELECT max(fetched_at) FROM {FUNDAMENTAL_TABLE} WHERE symbol = %(symbol)s",
            parameters={"symbol": symbol},
        )
        if not result.result_rows or result.result_rows[0][0] is None:
            return False
        last_fetched = _naive(result.result_rows[0][0])
        # 행이 없으면 max()가 1970-01-01을 돌려준다
        if last_fetched.year <= 1970:
            return False
        max_age = self.fundamental_max_age_days if max_age_days is None else max_age_days
        return datetime.now() - last_fetched < timedelta(days=max_age)

    def close(self) -> None:
        """ClickHouse 연결 종료."""
        if hasattr(self.client, "close"):
            self.client.close()
