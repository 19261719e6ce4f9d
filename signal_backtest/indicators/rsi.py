"""
RSI (상대강도지수) 계산.

[ 역할 ]
    Wilder 평활(smoothing) 방식의 RSI. 결과는 항상 0~100.

[ 계산 방식 ]
    1. 연속 종가 차이(changes) 계산
    2. 첫 period개 차이의 단순평균으로 평균 상승폭/하락폭 초기화 (하락폭은 양수로)
    3. 이후 매 스텝: avg = (avg * (period - 1) + 현재값) / period
    4. avg_loss == 0 이면 100, 아니면 100 - 100 / (1 + avg_gain / avg_loss)

[ 호출하는 곳 ]
    - signals/technical.py
"""

from typing import Iterator, Sequence

import numpy as np
import pandas as pd


def _wilder_averages(prices: Sequence[float], period: int) -> Iterator[tuple[int, float, float]]:
    """(인덱스, 평균상승, 평균하락)을 period 인덱스부터 차례로 생성."""
    changes = np.diff(np.asarray(prices, dtype=float))
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)

    avg_gain = gains[:period].sum() / period
    avg_loss = losses[:period].sum() / period
    yield period, avg_gain, avg_loss

    for i in range(period, len(changes)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        yield i + 1, avg_gain, avg_loss


def _to_rsi(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100 - 100 / (1 + rs))


def calculate_rsi(prices: Sequence[float], period: int = 14) -> float:
    """마지막 시점의 RSI. len(prices) < period + 1 이면 NaN."""
    if period < 1 or len(prices) < period + 1:
        return float("nan")

    avg_gain = avg_loss = 0.0
    for _, avg_gain, avg_loss in _wilder_averages(prices, period):
        pass
    return _to_rsi(avg_gain, avg_loss)


def calculate_rsi_series(prices: Sequence[float], period: int = 14) -> pd.Series:
    """period 인덱스부터 끝까지의 RSI Series. 평균을 이어서 갱신하므로 O(n)."""
    if period < 1 or len(prices) < period + 1:
        return pd.Series(dtype=float)

    index = []
    values = []
    for i, avg_gain, avg_loss in _wilder_averages(prices, period):
        index.append(i)
        values.append(_to_rsi(avg_gain, avg_loss))
    return pd.Series(values, index=index)
