import sys
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# 프로젝트 루트를 sys.path에 추가 (run_backtest.py 포함 최상위 모듈 임포트용)
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from signal_backtest.core.types import (  # noqa: E402
    ClosedTrade,
    CombinedSignal,
    ExitReason,
    PortfolioSnapshot,
    SignalType,
)
from signal_backtest.utils.config import RiskConfig, StrategyConfig  # noqa: E402


# ─── 시세 프레임 ─────────────────────────────────────────────────────────────

def make_frame(closes, start=date(2024, 1, 1)) -> pd.DataFrame:
    """종가 목록 → 영업일 OHLCV DataFrame."""
    dates = pd.bdate_range(start=start, periods=len(closes))
    closes = [float(c) for c in closes]
    return pd.DataFrame({
        "date": [d.date() for d in dates],
        "open": closes,
        "high": [c * 1.01 for c in closes],
        "low": [c * 0.99 for c in closes],
        "close": closes,
        "volume": [1_000_000] * len(closes),
    })


def rising_closes(n: int, start: float = 100.0, step: float = 1.0) -> list[float]:
    return [start + step * i for i in range(n)]


def random_walk_closes(n: int, seed: int = 7, start: float = 100.0) -> list[float]:
    rng = np.random.default_rng(seed)
    return list(start * np.cumprod(1 + rng.normal(0.0005, 0.015, n)))


# ─── 시그널 / 거래 ───────────────────────────────────────────────────────────

def make_signal(
    action=SignalType.BUY,
    total_score=60.0,
    technical_score=60.0,
    fundamental_score=60.0,
    technical_action=SignalType.BUY,
    fundamental_action=SignalType.HOLD,
) -> CombinedSignal:
    return CombinedSignal(
        action=action,
        total_score=total_score,
        technical_score=technical_score,
        fundamental_score=fundamental_score,
        technical_weight=53.33,
        fundamental_weight=46.67,
        technical_action=technical_action,
        fundamental_action=fundamental_action,
    )


def make_trade(
    pnl: float,
    pnl_percent: float,
    holding_days: int = 5,
    symbol: str = "AAPL",
    signal: CombinedSignal = None,
    exit_reason: ExitReason = ExitReason.SIGNAL_SELL,
) -> ClosedTrade:
    entry = date(2024, 1, 2)
    return ClosedTrade(
        id=f"{symbol}-{pnl}",
        symbol=symbol,
        entry_date=entry,
        entry_price=100.0,
        exit_date=entry + timedelta(days=holding_days),
        exit_price=100.0 * (1 + pnl_percent / 100),
        quantity=10,
        pnl=pnl,
        pnl_percent=pnl_percent,
        holding_days=holding_days,
        exit_reason=exit_reason,
        signal_at_entry=signal or make_signal(),
    )


def make_curve(equities, start=date(2024, 1, 1)) -> list[PortfolioSnapshot]:
    dates = pd.bdate_range(start=start, periods=len(equities))
    return [
        PortfolioSnapshot(date=d.date(), equity=float(e), cash=float(e), positions_value=0.0, open_position_count=0)
        for d, e in zip(dates, equities)
    ]


def buy_and_hold_strategy(symbols=("AAA",), initial_capital=10_000.0, stop_loss=None) -> StrategyConfig:
    n = len(symbols)
    return StrategyConfig(
        name="B&H Test",
        symbols=list(symbols),
        initial_capital=initial_capital,
        entry_policy="buy_and_hold",
        risk=RiskConfig(
            take_profit_percent=None,
            stop_loss_percent=stop_loss,
            max_position_size_percent=100 / n,
            max_open_positions=n,
        ),
    )


@pytest.fixture
def default_strategy() -> StrategyConfig:
    return StrategyConfig(name="Test Strategy", symbols=["AAA", "BBB"])


# ─── 가짜 ClickHouse 클라이언트 ──────────────────────────────────────────────

class FakeQueryResult:
    def __init__(self, rows):
        self.result_rows = rows


class FakeClickHouseClient:
    """insert된 행을 테이블별로 보관하고 캐시 모듈이 쓰는 쿼리에만 응답."""

    def __init__(self):
        self.tables = {"price_bars": [], "price_cache_coverage": [], "fundamental_data": []}
        self.commands = []
        self.closed = False

    def command(self, sql):
        self.commands.append(sql)
        return 1

    def insert(self, table, rows, column_names):
        for row in rows:
            self.tables[table].append(dict(zip(column_names, row)))

    def close(self):
        self.closed = True

    def query(self, sql, parameters=None):
        params = parameters or {}
        symbol = params.get("symbol")

        if "max(fetched_at)" in sql:
            fetched = [r["fetched_at"] for r in self.tables["fundamental_data"] if r["symbol"] == symbol]
            return FakeQueryResult([[max(fetched)]] if fetched else [[None]])

        if "price_cache_coverage" in sql and "DISTINCT" in sql:
            symbols = sorted({r["symbol"] for r in self.tables["price_cache_coverage"]})
            return FakeQueryResult([[s] for s in symbols])

        if "price_cache_coverage" in sql:
            rows = [
                r for r in self.tables["price_cache_coverage"]
                if r["symbol"] == symbol and r["timeframe"] == params["timeframe"]
            ]
            # 같은 시각이면 나중에 들어온 행 우선
            rows = sorted(reversed(rows), key=lambda r: r["last_fetched_at"], reverse=True)
            return FakeQueryResult(
                [[r["cached_from"], r["cached_to"], r["last_fetched_at"]] for r in rows[:1]]
            )

        if "fundamental_data" in sql:
            latest = {}
            for r in self.tables["fundamental_data"]:
                if r["symbol"] == symbol:
                    latest[r["report_date"]] = r
            rows = sorted(latest.values(), key=lambda r: r["report_date"], reverse=True)
            return FakeQueryResult([
                [r["report_date"], r["pe_ratio"], r["eps"], r["eps_growth"],
                 r["beta"], r["dividend_yield"], r["market_cap"]]
                for r in rows
            ])

        if "price_bars" in sql:
            latest = {}
            for r in self.tables["price_bars"]:
                if (
                    r["symbol"] == symbol
                    and r["timeframe"] == params["timeframe"]
                    and params["start_date"] <= r["date"] <= params["end_date"]
                ):
                    latest[r["date"]] = r
            rows = sorted(latest.values(), key=lambda r: r["date"])
            return FakeQueryResult([
                [r["date"], r["open"], r["high"], r["low"], r["close"], r["volume"]] for r in rows
            ])

        raise AssertionError(f"unexpected query: {sql}")


@pytest.fixture
def fake_clickhouse() -> FakeClickHouseClient:
    return FakeClickHouseClient()


# ─── 가짜 yfinance Ticker ────────────────────────────────────────────────────

def yahoo_history(closes, start=date(2024, 1, 1), adj_factor=1.0) -> pd.DataFrame:
    """Ticker.history(auto_adjust=False) 형태의 DataFrame."""
    index = pd.DatetimeIndex(pd.bdate_range(start=start, periods=len(closes)), name="Date")
    closes = [float(c) for c in closes]
    return pd.DataFrame({
        "Open": closes,
        "High": [c * 1.02 for c in closes],
        "Low": [c * 0.98 for c in closes],
        "Close": closes,
        "Adj Close": [c * adj_factor for c in closes],
        "Volume": [500_000] * len(closes),
    }, index=index)
