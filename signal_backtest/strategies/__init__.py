"""
진입 정책 모듈.

[ 정책 등록 방식 ]
    @register("정책이름") 데코레이터를 붙이면 POLICY_REGISTRY에 자동 등록.
    StrategyConfig.entry_policy 값(이름)만으로 정책 인스턴스를 찾아 생성한다.

[ 새 정책 추가 방법 ]
    1. 이 디렉토리에 새 .py 파일 생성
    2. EntryPolicy를 상속받는 클래스 작성
    3. @register("이름") 데코레이터 추가
    4. config.yaml에서 strategy.entry_policy를 해당 이름으로 설정
"""

from importlib import import_module
from pathlib import Path

from signal_backtest.core.entry_policy import EntryPolicy

# 정책 이름 → 정책 클래스 매핑
POLICY_REGISTRY: dict[str, type[EntryPolicy]] = {}


def register(name: str):
    """정책 클래스를 POLICY_REGISTRY에 등록하는 데코레이터."""
    def decorator(cls: type[EntryPolicy]):
        POLICY_REGISTRY[name] = cls
        return cls
    return decorator


def create_policy(name: str) -> EntryPolicy:
    """이름으로 정책 인스턴스를 생성.

    Raises:
        ValueError: 등록되지 않은 정책 이름
    """
    if name not in POLICY_REGISTRY:
        available = ", ".join(sorted(POLICY_REGISTRY.keys()))
        raise ValueError(f"알 수 없는 진입 정책: '{name}'. 사용 가능: {available}")
    return POLICY_REGISTRY[name]()


def list_policies() -> list[str]:
    """등록된 정책 이름 목록 반환."""
    return sorted(POLICY_REGISTRY.keys())


def _auto_discover():
    """이 디렉토리의 모든 정책 모듈을 자동 임포트하여 @register가 실행되게 한다."""
    policies_dir = Path(__file__).parent
    for py_file in policies_dir.glob("*.py"):
        if py_file.name.startswith("_"):
            continue
        import_module(f"signal_backtest.strategies.{py_file.stem}")


# 모듈 로드 시 자동 탐색
_auto_discover()
