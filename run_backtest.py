"""
백테스트 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml의 전략, 샘플 데이터)
    python run_backtest.py

    # Yahoo Finance 데이터 사용 (database.enabled = true면 ClickHouse 캐시)
    python run_backtest.py --source yahoo

    # 종목 지정
    python run_backtest.py --symbols AAPL MSFT NVDA

    # 파라미터 오버라이드 (strategy 섹션 기준, 점으로 중첩 키 지정)
    python run_backtest.py -p risk.stop_loss_percent=5 -p technical.rsi_oversold=25
    python run_backtest.py -p risk.take_profit_percent=none

    # 여러 전략 비교 (config.yaml의 comparisons + 추가 설정 파일) + Buy & Hold
    python run_backtest.py --compare
    python run_backtest.py --compare configs/aggressive.yaml configs/defensive.yaml

    # 등급 평가 / CSV 내보내기
    python run_backtest.py --grade --export results/backtest.csv

    # 등록된 진입 정책 목록 확인
    python run_backtest.py --list-policies
"""

import argparse
import re
import zlib
from dataclasses import asdict, replace
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from signal_backtest.backtest.equity_curve import normalize_equity_curves
from signal_backtest.backtest.grader import compare_to_benchmark, grade_strategy
from signal_backtest.backtest.report import export_backtest_csv
from signal_backtest.backtest.runner import (
    BENCHMARK_LABEL,
    BacktestOutput,
    BacktestRunner,
    ComparisonEntry,
    ComparisonResult,
)
from signal_backtest.core.types import BacktestProgress, FundamentalData
from signal_backtest.data.clickhouse_cache import ClickHouseDataCache
from signal_backtest.data.frame_provider import FrameDataProvider
from signal_backtest.data.fundamental_data import FundamentalDataService
from signal_backtest.data.historical_data import HistoricalDataService
from signal_backtest.data.memory_cache import MemoryDataCache
from signal_backtest.ingestion.clickhouse_schema import get_cached_symbols, verify_connection
from signal_backtest.ingestion.yahoo_finance import YahooFundamentalProvider, YahooHistoricalProvider
from signal_backtest.strategies import list_policies
from signal_backtest.utils.config import Config, StrategyConfig, merge_overrides
from signal_backtest.utils.logger import setup_logger


def _seed(symbol: str) -> int:
    """종목별 고정 시드 (실행마다 같은 샘플 데이터)."""
    return zlib.crc32(symbol.encode("utf-8"))


def generate_sample_data(
    symbol: str,
    start_date: date,
    end_date: date,
    initial_price: float = 150.0,
    volatility: float = 0.02,
) -> pd.DataFrame:
    """백테스트용 샘플 주가 데이터 생성 (영업일 랜덤워크)."""
    rng = np.random.default_rng(_seed(symbol))

    dates = pd.bdate_range(start=start_date, end=end_date)
    n = len(dates)

    returns = rng.normal(0.0004, volatility, n)
    prices = initial_price * np.cumprod(1 + returns)

    data = []
    for i, d in enumerate(dates):
        close = prices[i]
        high = close * (1 + abs(rng.normal(0, 0.01)))
        low = close * (1 - abs(rng.normal(0, 0.01)))
        open_price = close * (1 + rng.normal(0, 0.005))
        volume = int(rng.lognormal(15, 0.5))

        data.append({
            "date": d.date(),
            "open": round(open_price, 2),
            "high": round(max(high, open_price, close), 2),
            "low": round(min(low, open_price, close), 2),
            "close": round(close, 2),
            "volume": volume,
        })

    return pd.DataFrame(data)


def generate_sample_fundamentals(symbol: str, start_date: date, end_date: date) -> list[FundamentalData]:
    """분기별 샘플 펀더멘털 (report_date 내림차순)."""
    rng = np.random.default_rng(_seed(symbol) + 1)
    beta = round(float(rng.uniform(0.7, 1.6)), 2)
    market_cap = float(rng.uniform(5e10, 2e12))
    dividend_yield = round(float(rng.uniform(0, 0.03)), 4)

    records = []
    report_date = start_date
    eps = float(rng.uniform(3, 8))
    while report_date <= end_date:
        eps_growth = float(rng.normal(0.08, 0.12))
        eps *= 1 + eps_growth / 4
        records.append(FundamentalData(
            symbol=symbol,
            pe_ratio=round(float(rng.uniform(12, 40)), 2),
            eps=round(eps, 2),
            eps_growth=round(eps_growth, 4),
            beta=beta,
            dividend_yield=dividend_yield,
            market_cap=market_cap,
            report_date=report_date,
        ))
        report_date += timedelta(days=91)

    records.reverse()
    return records


def parse_param(param_str: str) -> tuple[str, object]:
    """'key=value' 문자열을 파싱하여 (key, value) 반환. 숫자/bool/none은 자동 변환."""
    key, _, value = param_str.partition("=")
    key = key.strip()
    value = value.strip()

    # 숫자 자동 변환
    try:
        if "." in value:
            return key, float(value)
        return key, int(value)
    except ValueError:
        # bool / None 변환
        if value.lower() in ("true", "yes"):
            return key, True
        if value.lower() in ("false", "no"):
            return key, False
        if value.lower() in ("none", "null"):
            return key, None
        return key, value


def param_to_override(key: str, value: object) -> dict:
    """'risk.stop_loss_percent' → {"risk": {"stop_loss_percent": value}}"""
    override: object = value
    for part in reversed(key.split(".")):
        override = {part: override}
    return override


def apply_params(strategy: StrategyConfig, params: list[str]) -> StrategyConfig:
    """CLI 파라미터를 전략 설정에 덮어쓴 새 StrategyConfig 반환."""
    data = asdict(strategy)
    for p in params:
        key, value = parse_param(p)
        data = merge_overrides(data, param_to_override(key, value))
    return StrategyConfig.from_dict(data)


def load_config(path: Path) -> Config:
    if not path.exists():
        print(f"설정 파일 없음: {path}, 기본값 사용")
        return Config()
    if path.suffix == ".json":
        return Config.from_json(path)
    return Config.from_yaml(path)


def build_sample_services(config: Config, symbols: list[str]) -> tuple[HistoricalDataService, FundamentalDataService]:
    """샘플 데이터를 올린 FrameDataProvider 기반 서비스 생성."""
    start = date.fromisoformat(config.backtest.start_date)
    end = date.fromisoformat(config.backtest.end_date)
    warmup_start = (pd.Timestamp(start) - pd.DateOffset(months=config.backtest.warmup_months)).date()

    print("샘플 데이터 생성 중...")
    provider = FrameDataProvider()
    for i, symbol in enumerate(symbols):
        df = generate_sample_data(symbol, warmup_start, end, initial_price=100.0 + 50 * (i % 5))
        provider.load_data(symbol, df)
        provider.load_fundamentals(symbol, generate_sample_fundamentals(symbol, warmup_start, end))
        print(f"  {symbol}: {len(df)}일 데이터")

    cache = MemoryDataCache(config.data.fundamental_cache_max_age_days)
    return (
        HistoricalDataService(provider, cache),
        FundamentalDataService(provider, cache, batch_size=config.data.fundamental_batch_size),
    )


def build_yahoo_services(config: Config) -> tuple[HistoricalDataService, FundamentalDataService, Optional[ClickHouseDataCache]]:
    """Yahoo Finance 제공자 + 캐시(ClickHouse 또는 메모리) 기반 서비스 생성."""
    clickhouse_cache = None
    if config.database.enabled:
        print(f"ClickHouse 캐시 연결 중... ({config.database.host}:{config.database.port})")
        try:
            clickhouse_cache = ClickHouseDataCache.from_config(config.database, config.data)
        except Exception as e:
            print(f"  ClickHouse 연결 실패 ({e}), 메모리 캐시 사용")

        if clickhouse_cache is not None and verify_connection(clickhouse_cache.client):
            cached = get_cached_symbols(clickhouse_cache.client, config.backtest.timeframe)
            print(f"  캐시된 종목: {cached or '(없음)'}")

    cache = clickhouse_cache or MemoryDataCache(config.data.fundamental_cache_max_age_days)
    historical = YahooHistoricalProvider(
        max_retries=config.data.max_retries,
        retry_delay=config.data.retry_delay,
        use_adjusted_close=config.data.use_adjusted_close,
    )
    fundamental = YahooFundamentalProvider(
        report_lag_days=config.data.report_lag_days,
        max_retries=config.data.max_retries,
        retry_delay=config.data.retry_delay,
    )
    return (
        HistoricalDataService(historical, cache),
        FundamentalDataService(fundamental, cache, batch_size=config.data.fundamental_batch_size),
        clickhouse_cache,
    )


def print_progress(progress: BacktestProgress) -> None:
    if progress.current == 0:
        print(f"  [{progress.phase.value}] {progress.message}")


def print_single_result(output: BacktestOutput, show_grade: bool):
    """단일 전략 결과 출력."""
    print(f"\n[전략: {output.config.name}] {output.start_date} ~ {output.end_date}")
    print(output.metrics.summary())

    if output.trades:
        print("\n최근 청산 거래 (최대 5건):")
        for t in output.trades[-5:]:
            pnl_str = f"+{t.pnl:,.2f}" if t.pnl > 0 else f"{t.pnl:,.2f}"
            print(
                f"  [{t.exit_date}] {t.symbol} {t.quantity}주 "
                f"${t.entry_price:,.2f} -> ${t.exit_price:,.2f} ({t.exit_reason.value}) {pnl_str}$"
            )

    print("\n시그널 기여도:")
    for a in output.attribution:
        print(
            f"  {a.signal_type:<12} 매수 {a.buy_signals}회, 매도 {a.sell_signals}회, "
            f"매수 적중률 {a.buy_accuracy:.1f}%"
        )

    if show_grade:
        print()
        print(grade_strategy(output.metrics).summary())


def print_comparison(results: list[ComparisonResult]):
    """여러 전략 비교 결과 출력. 마지막 열은 Buy & Hold 벤치마크."""
    symbols = results[0].output.config.symbols
    period = f"{results[0].output.start_date} ~ {results[0].output.end_date}"

    names = [r.label for r in results]
    metrics = {r.label: r.output.metrics for r in results}
    col_width = max(14, max(len(n) for n in names) + 2)

    print(f"\n{'=' * (20 + col_width * len(names))}")
    print(f"전략 비교 결과 ({', '.join(symbols)}, {period})")
    print(f"{'=' * (20 + col_width * len(names))}")

    # 헤더
    header = f"{'':>20}" + "".join(f"{n:>{col_width}}" for n in names)
    print(header)
    print("-" * len(header))

    # 지표 행
    rows = [
        ("총 수익률", lambda m: f"{m.total_return:.2f}%"),
        ("연환산 수익률", lambda m: f"{m.annualized_return:.2f}%"),
        ("샤프 비율", lambda m: f"{m.sharpe_ratio:.2f}"),
        ("최대 낙폭(MDD)", lambda m: f"{m.max_drawdown:.2f}%"),
        ("총 거래 횟수", lambda m: f"{m.total_trades}"),
        ("승률", lambda m: f"{m.win_rate:.1f}%"),
        ("수익 팩터", lambda m: "∞" if np.isinf(m.profit_factor) else f"{m.profit_factor:.2f}"),
        ("평균 수익", lambda m: f"{m.avg_win_percent:.2f}%"),
        ("평균 손실", lambda m: f"{m.avg_loss_percent:.2f}%"),
        ("평균 보유일", lambda m: f"{m.avg_holding_days:.1f}"),
        ("최대 연속 수익", lambda m: f"{m.max_consecutive_wins}"),
        ("최대 연속 손실", lambda m: f"{m.max_consecutive_losses}"),
        ("등급", lambda m: grade_strategy(m).letter),
    ]

    for label, fmt in rows:
        row = f"{label:>20}" + "".join(f"{fmt(metrics[n]):>{col_width}}" for n in names)
        print(row)

    print(f"{'=' * (20 + col_width * len(names))}")

    benchmark = metrics.get(BENCHMARK_LABEL)
    if benchmark is None:
        return
    print(f"\n{BENCHMARK_LABEL} 대비 ({benchmark.total_return:.2f}%):")
    for name in names:
        if name == BENCHMARK_LABEL:
            continue
        comparison = compare_to_benchmark(metrics[name], benchmark.total_return)
        print(f"  {name:<20} 초과수익 {comparison.alpha:+.2f}%p  {comparison.verdict}")


def comparison_entries(
    config: Config,
    extra_configs: list[str],
    symbols: Optional[list[str]] = None,
    params: Optional[list[str]] = None,
) -> list[ComparisonEntry]:
    """config.yaml의 comparisons(없으면 기본 전략) + 추가 설정 파일의 전략.

    -p 오버라이드와 --symbols는 모든 비교 전략에 똑같이 적용한다.
    원래 설정 객체는 바꾸지 않고 복사본을 만든다.
    """
    entries = [ComparisonEntry(c.label, c.strategy) for c in config.comparisons]
    if not entries:
        entries.append(ComparisonEntry(config.strategy.name, config.strategy))
    for path in extra_configs:
        strategy = load_config(Path(path)).strategy
        entries.append(ComparisonEntry(strategy.name or Path(path).stem, strategy))

    result = []
    for entry in entries:
        strategy = apply_params(entry.config, params or [])
        if symbols:
            strategy = replace(strategy, symbols=list(symbols))
        result.append(ComparisonEntry(entry.label, strategy))
    return result


def _slug(label: str) -> str:
    return re.sub(r"[^0-9A-Za-z]+", "_", label).strip("_").lower() or "strategy"


def main():
    parser = argparse.ArgumentParser(description="멀티 시그널 주식 백테스트 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로 (.yaml / .json)")
    parser.add_argument("--source", type=str, default="sample", choices=["sample", "yahoo"], help="데이터 소스")
    parser.add_argument("--symbols", nargs="+", metavar="SYMBOL", help="종목 (config.yaml 대신 지정)")
    parser.add_argument("-p", "--param", action="append", default=[],
                        help="전략 파라미터 오버라이드 (예: -p risk.stop_loss_percent=5, --compare 시 모든 전략에 적용)")
    parser.add_argument("--compare", nargs="*", metavar="CONFIG",
                        help="여러 전략 비교 (config.yaml의 comparisons + 추가 설정 파일)")
    parser.add_argument("--export", type=str, metavar="PATH", help="결과 CSV 저장 경로")
    parser.add_argument("--grade", action="store_true", help="등급 평가 출력")
    parser.add_argument("--list-policies", action="store_true", help="등록된 진입 정책 목록 출력")
    args = parser.parse_args()

    # 진입 정책 목록 출력
    if args.list_policies:
        print("등록된 진입 정책:")
        for name in list_policies():
            print(f"  - {name}")
        return

    # 설정 로드
    config = load_config(Path(args.config))
    setup_logger(level=config.log_level, log_dir=config.log_dir)

    strategy = apply_params(config.strategy, args.param)
    if args.symbols:
        strategy = replace(strategy, symbols=[s.upper() for s in args.symbols])
    config.strategy = strategy

    if args.param:
        print(f"파라미터 오버라이드: {dict(parse_param(p) for p in args.param)}")

    entries = None
    if args.compare is not None:
        entries = comparison_entries(
            config, args.compare, strategy.symbols if args.symbols else None, args.param
        )

    # 데이터 서비스 (한 번만 생성, 전략 간 캐시 공유)
    clickhouse_cache = None
    if args.source == "sample":
        symbols = list(dict.fromkeys(
            s for cfg in ([e.config for e in entries] if entries else [strategy]) for s in cfg.symbols
        ))
        historical, fundamental = build_sample_services(config, symbols)
    else:
        historical, fundamental, clickhouse_cache = build_yahoo_services(config)

    runner = BacktestRunner(historical, fundamental, config.backtest)
    start, end = config.backtest.start_date, config.backtest.end_date

    try:
        # ─── 비교 모드 ───────────────────────────────────────────────────
        if entries is not None:
            print(f"\n{len(entries)}개 전략 + {BENCHMARK_LABEL} 비교 실행...")
            results = runner.run_comparison(entries, start, end, on_progress=print_progress)
            print_comparison(results)

            if args.export:
                export_path = Path(args.export)
                for r in results:
                    path = export_path.with_name(f"{export_path.stem}_{_slug(r.label)}{export_path.suffix or '.csv'}")
                    print(f"CSV 저장: {export_backtest_csv(r.output, path)}")
                curves = normalize_equity_curves({r.label: r.output.equity_curve for r in results})
                curves_path = export_path.with_name(f"{export_path.stem}_equity.csv")
                curves.to_csv(curves_path, float_format="%.4f")
                print(f"자산 곡선 비교 저장: {curves_path}")
            return

        # ─── 단일 실행 모드 ─────────────────────────────────────────────
        print(f"\n전략: {strategy.name} ({', '.join(strategy.symbols)})")
        output = runner.run_backtest(strategy, start, end, on_progress=print_progress)
        print_single_result(output, args.grade)

        if args.export:
            print(f"\nCSV 저장: {export_backtest_csv(output, args.export)}")
    finally:
        if clickhouse_cache is not None:
            clickhouse_cache.close()


if __name__ == "__main__":
    main()
