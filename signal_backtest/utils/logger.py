"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정. 백테스트 진행, 진입/청산 내역, 데이터 수집 에러 등을 기록.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/signal_backtest_20240601.log)

[ 호출하는 곳 ]
    - run_backtest.py에서 setup_logger() 호출
    - 각 모듈은 logging.getLogger("signal_backtest.<영역>") 사용
      (backtest, runner, data, ingestion) → 이 로거의 하위 로거라 핸들러를 공유
"""

import logging
import sys
from datetime import datetime
from pathlib import Path


# 외부 라이브러리 로거 (DEBUG 실행 시 HTTP 요청 로그가 쏟아지는 것 방지)
NOISY_LOGGERS = ("yfinance", "urllib3", "peewee", "clickhouse_connect")


def setup_logger(
    name: str = "signal_backtest",
    level: str = "INFO",
    log_dir: str = "logs",
    console: bool = True,
    quiet_libraries: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if quiet_libraries:
        for lib in NOISY_LOGGERS:
            logging.getLogger(lib).setLevel(logging.WARNING)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # 파일 핸들러
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    today = datetime.now().strftime("%Y%m%d")
    file_handler = logging.FileHandler(
        log_path / f"{name}_{today}.log",
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # 콘솔 핸들러
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
