"""
=============================================================================
멀티 시그널 주식 백테스트 (Signal Backtest)
=============================================================================

[ 시스템 전체 구조 ]

    run_backtest.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         │
         └── backtest/runner.py     ← 백테스트 실행기 (시세/펀더멘털 조회 → 시뮬레이션 → 지표)
               │
               ├── data/historical_data.py   ← 시세 조회 (캐시 → 제공자)
               ├── data/fundamental_data.py  ← 펀더멘털 조회 (캐시 → 제공자)
               │
               ├── backtest/simulator.py     ← 일별 시뮬레이션
               │     ├── indicators/         ← SMA, RSI
               │     ├── signals/            ← 기술/펀더멘털/감성 시그널 + 조합(combiner)
               │     ├── strategies/         ← 진입 정책 (signals, buy_and_hold)
               │     └── backtest/position_tracker.py ← 현금/포지션/청산 기록
               │
               ├── backtest/metrics.py       ← 성과 지표
               ├── backtest/attribution.py   ← 시그널 기여도
               ├── backtest/grader.py        ← 등급 평가 + 인사이트
               └── backtest/report.py        ← 리포트 / CSV 내보내기


[ 핵심 추상 클래스 (core/) - 모든 구현체의 부모 ]

    core/data_provider.py  → ingestion/yahoo_finance.py (yfinance)
                           → data/frame_provider.py     (샘플/테스트용)
                           → data/memory_cache.py, data/clickhouse_cache.py (캐시)

    core/entry_policy.py   → strategies/signal_vote.py, strategies/buy_and_hold.py


[ 데이터 흐름 ]

    1. config.yaml에서 전략 파라미터 로드
    2. 시작일보다 warmup_months 앞부터 OHLCV, 분기 펀더멘털 조회
    3. 매 거래일: 보유 포지션 익절/손절 점검 → 미보유 종목 시그널 평가 → 진입
    4. 종료일에 남은 포지션 전량 청산 (END_OF_PERIOD)
    5. 거래 결과 + 일별 자산곡선으로 성과 지표/기여도/등급 계산
"""
