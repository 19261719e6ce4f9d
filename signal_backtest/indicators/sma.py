"""
SMA (단순 이동평균) 계산.

[ 역할 ]
    종가 시퀀스에서 최근 period개의 산술평균을 계산.
    부작용 없는 순수 함수. 데이터가 부족하면 예외 대신 NaN / 빈 Series 반환.

[ 호출하는 곳 ]
    - signals/technical.py (단기/장기/추세 SMA)
"""

from typing import Sequence

import numpy as np
import pandas as pd


def calculate_sma(prices: Sequence[float], period: int) -> float:
    """최근 period개 종가의 평균. len(prices) < period면 NaN."""
    values = np.asarray(prices, dtype=float)
    if period < 1 or len(values) < period:
        return float("nan")
    return float(values[-period:].sum() / period)


def calculate_sma_series(prices: Sequence[float], period: int) -> pd.Series:
    """모든 유효 구간의 SMA.

    누적합(running sum)으로 O(n) 계산.
    인덱스는 각 구간의 마지막 원소 위치 (period-1 부터 시작).
    """
    values = np.asarray(prices, dtype=float)
    if period < 1 or len(values) < period:
        return pd.Series(dtype=float)

    running = np.concatenate(([0.0], np.cumsum(values)))
    sums = running[period:] - running[:-period]
    return pd.Series(sums / period, index=range(period - 1, len(values)))
