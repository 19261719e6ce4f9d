"""
Yahoo Finance 데이터 수집 모듈.

[ 역할 ]
    yfinance로 일봉 시세와 펀더멘털(프로필, 분기 실적)을 가져와
    엔진이 쓰는 형식(OHLCV DataFrame, FundamentalData)으로 변환.

[ 분기 지표 계산 ]
    quarterly_income_stmt의 "Diluted EPS"(없으면 "Basic EPS")로
        EPS(TTM)    = 최근 4분기 EPS 합
        EPS 성장률  = 같은 분기 전년 대비 (eps - eps_4q_ago) / |eps_4q_ago|
        report_date = 분기 종료일 + report_lag_days (실적 공개 지연 추정)
        PE          = report_date 당일(또는 직전) 종가 / EPS(TTM)
    베타/시가총액은 프로필에서 FundamentalDataService가 채운다.

[ 호출하는 곳 ]
    - run_backtest.py --source yahoo
"""

import logging
import time
from bisect import bisect_right
from datetime import date, timedelta
from typing import Optional

import pandas as pd
import yfinance as yf

from signal_backtest.core.data_provider import FundamentalDataProvider, HistoricalDataProvider
from signal_backtest.core.types import OHLCV_COLUMNS, FundamentalData

logger = logging.getLogger("signal_backtest.ingestion")

SUPPORTED_TIMEFRAMES = ("1Day",)
EPS_ROWS = ("Diluted EPS", "Basic EPS")
QUARTERS_PER_YEAR = 4


def _history_frame(history: pd.DataFrame) -> pd.DataFrame:
    """Ticker.history() 결과의 인덱스(날짜)를 datetime.date 컬럼으로."""
    df = history.reset_index()
    date_column = "Date" if "Date" in df.columns else df.columns[0]
    df = df.rename(columns={date_column: "date"})
    if pd.api.types.is_datetime64_any_dtype(df["date"]):
        df["date"] = df["date"].dt.date
    return df


def validate_data(df: pd.DataFrame, symbol: str) -> bool:
    """
    수집한 데이터를 검증합니다. 이상값은 경고만 남기고 통과시킵니다.

    Returns:
        필수 컬럼이 모두 있으면 True
    """
    if df is None or df.empty:
        logger.warning(f"Empty DataFrame for {symbol}")
        return False

    missing_columns = set(OHLCV_COLUMNS) - set(df.columns)
    if missing_columns:
        logger.error(f"Missing columns for {symbol}: {missing_columns}")
        return False

    null_counts = df[OHLCV_COLUMNS].isnull().sum()
    if null_counts.any():
        logger.warning(f"NULL values found in {symbol}: {null_counts[null_counts > 0].to_dict()}")

    for col in ("open", "high", "low", "close"):
        invalid_count = int((df[col] <= 0).sum())
        if invalid_count:
            logger.warning(f"Invalid {col} values (<=0) for {symbol}: {invalid_count} rows")

    invalid_count = int((df["high"] < df["low"]).sum())
    if invalid_count:
        logger.warning(f"Invalid OHLC relationship (high < low) for {symbol}: {invalid_count} rows")

    return True


class YahooHistoricalProvider(HistoricalDataProvider):
    """yfinance 일봉 시세 제공자."""

    def __init__(self, max_retries: int = 3, retry_delay: int = 5, use_adjusted_close: bool = True):
        """
        Args:
            max_retries: 최대 재시도 횟수
            retry_delay: 재시도 간 대기 시간 (초)
            use_adjusted_close: True이면 close 컬럼에 수정종가(Adj Close)를 사용
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.use_adjusted_close = use_adjusted_close

    def fetch_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> pd.DataFrame:
        if timeframe not in SUPPORTED_TIMEFRAMES:
            raise ValueError(f"지원하지 않는 timeframe: {timeframe} (1Day만 지원)")

        for attempt in range(self.max_retries):
            try:
                logger.info(
                    f"Fetching {symbol} from {start_date} to {end_date} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                history = yf.Ticker(symbol).history(
                    start=start_date,
                    end=end_date + timedelta(days=1),  # end_date 포함
                    auto_adjust=False,                 # Adj Close를 별도로 가져옴
                    actions=False,
                )
                if history is None or history.empty:
                    logger.warning(f"No data found for {symbol}")
                    return pd.DataFrame(columns=OHLCV_COLUMNS)

                df = self._normalize(history)
                if not validate_data(df, symbol):
                    logger.warning(f"Data validation failed for {symbol}")
                    return pd.DataFrame(columns=OHLCV_COLUMNS)

                logger.info(f"Successfully fetched {len(df)} rows for {symbol}")
                return df

            except Exception as e:
                logger.error(f"Error fetching {symbol} (attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    logger.info(f"Retrying in {self.retry_delay} seconds...")
                    time.sleep(self.retry_delay)

        logger.error(f"Max retries reached for {symbol}")
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    def _normalize(self, history: pd.DataFrame) -> pd.DataFrame:
        """컬럼명 표준화, 날짜 중복 제거, 날짜순 정렬."""
        df = _history_frame(history).rename(columns={
            "Open": "open",
            "High": "high",
            "Low": "low",
            "Close": "close",
            "Adj Close": "adj_close",
            "Volume": "volume",
        })
        if self.use_adjusted_close and "adj_close" in df.columns:
            df["close"] = df["adj_close"]

        df = df[OHLCV_COLUMNS]
        df = df.drop_duplicates(subset="date", keep="last").sort_values("date").reset_index(drop=True)
        df["volume"] = df["volume"].fillna(0).astype("int64")
        return df


class YahooFundamentalProvider(FundamentalDataProvider):
    """yfinance 펀더멘털 제공자."""

    def __init__(self, report_lag_days: int = 45, max_retries: int = 3, retry_delay: int = 5):
        self.report_lag_days = report_lag_days
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _with_retries(self, what: str, symbol: str, func):
        for attempt in range(self.max_retries):
            try:
                return func()
            except Exception as e:
                logger.error(f"Error fetching {what} for {symbol} (attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_delay)
        logger.error(f"Max retries reached for {what} of {symbol}")
        return None

    def fetch_profile(self, symbol: str) -> Optional[FundamentalData]:
        """Ticker.info 기반 현재 프로필. report_date는 조회일."""
        info = self._with_retries("profile", symbol, lambda: yf.Ticker(symbol).info)
        if not info:
            logger.warning(f"No profile found for {symbol}")
            return None

        return FundamentalData(
            symbol=symbol,
            pe_ratio=_as_float(info.get("trailingPE")),
            eps=_as_float(info.get("trailingEps")),
            eps_growth=_as_float(info.get("earningsQuarterlyGrowth")),
            beta=_as_float(info.get("beta")),
            dividend_yield=_as_float(info.get("trailingAnnualDividendYield")),
            market_cap=_as_float(info.get("marketCap")),
            report_date=date.today(),
        )

    def fetch_quarterly_metrics(self, symbol: str) -> list[FundamentalData]:
        """분기 손익계산서 기반 지표 (report_date 내림차순)."""
        ticker = yf.Ticker(symbol)
        statement = self._with_retries("quarterly income statement", symbol, lambda: ticker.quarterly_income_stmt)
        quarters = _quarterly_eps(statement)
        if len(quarters) < QUARTERS_PER_YEAR:
            logger.warning(f"Not enough quarterly EPS data for {symbol}: {len(quarters)} quarters")
            return []

        report_dates = [period_end + timedelta(days=self.report_lag_days) for period_end, _ in quarters]
        closes = self._closes_between(ticker, symbol, report_dates[0] - timedelta(days=10), report_dates[-1])

        records = []
        for i in range(QUARTERS_PER_YEAR - 1, len(quarters)):
            ttm_eps = sum(eps for _, eps in quarters[i - QUARTERS_PER_YEAR + 1:i + 1])

            eps_growth = None
            if i >= QUARTERS_PER_YEAR:
                prev = quarters[i - QUARTERS_PER_YEAR][1]
                if prev != 0:
                    eps_growth = (quarters[i][1] - prev) / abs(prev)

            price = _close_on_or_before(closes, report_dates[i])
            pe_ratio = price / ttm_eps if price is not None and ttm_eps != 0 else None

            records.append(FundamentalData(
                symbol=symbol,
                pe_ratio=pe_ratio,
                eps=ttm_eps,
                eps_growth=eps_growth,
                report_date=report_dates[i],
            ))

        records.sort(key=lambda r: r.report_date, reverse=True)
        logger.info(f"Built {len(records)} quarterly records for {symbol}")
        return records

    def _closes_between(self, ticker, symbol: str, start: date, end: date) -> list[tuple[date, float]]:
        history = self._with_retries(
            "price history", symbol,
            lambda: ticker.history(start=start, end=end + timedelta(days=1), auto_adjust=False, actions=False),
        )
        if history is None or history.empty:
            return []
        df = _history_frame(history).sort_values("date")
        return list(zip(df["date"], df["Close"].astype(float)))


def _as_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if pd.isna(result) else result


def _quarterly_eps(statement: Optional[pd.DataFrame]) -> list[tuple[date, float]]:
    """손익계산서에서 (분기 종료일, EPS) 목록을 오래된 순으로."""
    if statement is None or statement.empty:
        return []
    row_name = next((name for name in EPS_ROWS if name in statement.index), None)
    if row_name is None:
        return []

    eps = statement.loc[row_name].dropna()
    quarters = [(pd.Timestamp(col).date(), float(value)) for col, value in eps.items()]
    return sorted(quarters)


def _close_on_or_before(closes: list[tuple[date, float]], target: date) -> Optional[float]:
    idx = bisect_right([d for d, _ in closes], target)
    return closes[idx - 1][1] if idx else None
