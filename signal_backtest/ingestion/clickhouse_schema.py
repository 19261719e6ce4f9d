"""
ClickHouse 캐시 스키마 정의 및 연결 관리.

[ 테이블 ]
    price_bars            - 종목/봉단위/날짜별 OHLCV
    price_cache_coverage  - 종목/봉단위별 캐시된 기간과 마지막 조회 시각
    fundamental_data      - 종목/공개일별 펀더멘털 지표

    모두 ReplacingMergeTree. 같은 키로 다시 쓰면 최신 행이 남으므로 조회 시 FINAL 사용.

[ 호출하는 곳 ]
    - data/clickhouse_cache.py::ClickHouseDataCache.from_config()
"""

import logging
from typing import Optional

import clickhouse_connect
from clickhouse_connect.driver import Client

logger = logging.getLogger("signal_backtest.ingestion")

PRICE_BARS_TABLE = "price_bars"
COVERAGE_TABLE = "price_cache_coverage"
FUNDAMENTAL_TABLE = "fundamental_data"


def get_client(
    host: str = "localhost",
    port: int = 8123,
    database: str = "default",
    user: str = "default",
    password: str = "password",
) -> Client:
    """
    ClickHouse 클라이언트 연결 생성

    Args:
        host: ClickHouse 호스트
        port: HTTP 포트 (기본값: 8123)
        database: 데이터베이스 이름
        user: 사용자 이름
        password: 비밀번호
    """
    return clickhouse_connect.get_client(
        host=host,
        port=port,
        database=database,
        username=user,
        password=password,
    )


def initialize_schema(client: Client) -> None:
    """캐시 테이블 생성 (이미 존재하면 무시)."""
    create_bars_table = f"""
    CREATE TABLE IF NOT EXISTS {PRICE_BARS_TABLE} (
        symbol String,
        timeframe String,
        date Date,
        open Float64,
        high Float64,
        low Float64,
        close Float64,
        volume UInt64,
        ingestion_time DateTime DEFAULT now()
    )
    ENGINE = ReplacingMergeTree(ingestion_time)
    PARTITION BY toYYYYMM(date)
    ORDER BY (symbol, timeframe, date)
    SETTINGS index_granularity = 8192
    """

    create_coverage_table = f"""
    CREATE TABLE IF NOT EXISTS {COVERAGE_TABLE} (
        symbol String,
        timeframe String,
        cached_from Date,
        cached_to Date,
        row_count UInt32,
        last_fetched_at DateTime
    )
    ENGINE = ReplacingMergeTree(last_fetched_at)
    ORDER BY (symbol, timeframe)
    """

    create_fundamental_table = f"""
    CREATE TABLE IF NOT EXISTS {FUNDAMENTAL_TABLE} (
        symbol String,
        report_date Date,
        pe_ratio Nullable(Float64),
        eps Nullable(Float64),
        eps_growth Nullable(Float64),
        beta Nullable(Float64),
        dividend_yield Nullable(Float64),
        market_cap Nullable(Float64),
        fetched_at DateTime
    )
    ENGINE = ReplacingMergeTree(fetched_at)
    ORDER BY (symbol, report_date)
    """

    client.command(create_bars_table)
    client.command(create_coverage_table)
    client.command(create_fundamental_table)
    logger.info("캐시 테이블 생성 완료 (또는 이미 존재)")


def verify_connection(client: Client) -> bool:
    """ClickHouse 연결 검증."""
    try:
        return client.command("SELECT 1") == 1
    except Exception as e:
        logger.error(f"ClickHouse 연결 실패: {e}")
        return False


def get_cached_symbols(client: Client, timeframe: Optional[str] = None) -> list[str]:
    """시세가 캐시된 종목 목록."""
    if timeframe:
        result = client.query(
            f"SELECT DISTINCT symbol FROM {COVERAGE_TABLE} WHERE timeframe = %(timeframe)s ORDER BY symbol",
            parameters={"timeframe": timeframe},
        )
    else:
        result = client.query(f"SELECT DISTINCT symbol FROM {COVERAGE_TABLE} ORDER BY symbol")
    return [row[0] for row in result.result_rows]
