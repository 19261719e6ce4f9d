"""
DataFrame 기반 데이터 제공자.

[ 역할 ]
    미리 메모리에 올린 OHLCV DataFrame과 펀더멘털 레코드를 그대로 돌려준다.
    네트워크 없이 샘플 데이터(run_backtest.py --source sample)나 테스트에 사용.

[ 호출하는 곳 ]
    - run_backtest.py (샘플 모드)
    - tests/ 의 러너/서비스 테스트
"""

from datetime import date
from typing import Optional

import pandas as pd

from signal_backtest.core.data_provider import FundamentalDataProvider, HistoricalDataProvider
from signal_backtest.core.types import OHLCV_COLUMNS, FundamentalData


class FrameDataProvider(HistoricalDataProvider, FundamentalDataProvider):
    """메모리 DataFrame 제공자.

    사용법:
        provider = FrameDataProvider()
        provider.load_data("AAPL", aapl_df)
        provider.load_fundamentals("AAPL", [FundamentalData(...), ...])
        df = provider.fetch_bars("AAPL", date(2024, 1, 1), date(2024, 12, 31))
    """

    def __init__(self):
        self._data: dict[str, pd.DataFrame] = {}                  # symbol → OHLCV DataFrame
        self._fundamentals: dict[str, list[FundamentalData]] = {}
        self._profiles: dict[str, FundamentalData] = {}
        self.fetch_count = 0                                      # fetch_bars 호출 횟수

    def load_data(self, symbol: str, df: pd.DataFrame) -> None:
        """시세 로드. date 컬럼을 datetime.date로 맞추고 날짜순 정렬."""
        df = df.copy()
        df["date"] = pd.to_datetime(df["date"]).dt.date
        self._data[symbol] = (
            df.drop_duplicates(subset="date", keep="last")
            .sort_values("date")
            .reset_index(drop=True)
        )

    def load_fundamentals(self, symbol: str, records: list[FundamentalData]) -> None:
        self._fundamentals[symbol] = sorted(
            records, key=lambda r: r.report_date or date.min, reverse=True
        )

    def load_profile(self, symbol: str, profile: FundamentalData) -> None:
        self._profiles[symbol] = profile

    def symbols(self) -> list[str]:
        return sorted(self._data.keys())

    def fetch_bars(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        timeframe: str = "1Day",
    ) -> pd.DataFrame:
        if timeframe != "1Day":
            raise ValueError(f"지원하지 않는 timeframe: {timeframe} (1Day만 지원)")
        self.fetch_count += 1
        if symbol not in self._data:
            return pd.DataFrame(columns=OHLCV_COLUMNS)

        df = self._data[symbol]
        mask = (df["date"] >= start_date) & (df["date"] <= end_date)
        return df.loc[mask, OHLCV_COLUMNS].copy().reset_index(drop=True)

    def fetch_profile(self, symbol: str) -> Optional[FundamentalData]:
        return self._profiles.get(symbol)

    def fetch_quarterly_metrics(self, symbol: str) -> list[FundamentalData]:
        return list(self._fundamentals.get(symbol, []))
