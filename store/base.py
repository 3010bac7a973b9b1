"""Key/Value 저장소 어댑터 기본 인터페이스"""
from abc import ABC, abstractmethod


class BaseKeyValueStore(ABC):
    """
    Key/Value 저장소 어댑터 기본 클래스

    잡 큐의 영속 계층으로 사용됩니다. 키 단위 TTL을 지원하는
    get / set / delete 세 가지 연산만 요구합니다.
    """

    name: str = "kv"

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """
        값 조회

        Returns:
            저장된 문자열 값 (없거나 만료되었으면 None)
        """
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """
        값 저장 (기존 값 덮어쓰기)

        Args:
            key: 저장 키
            value: 저장할 문자열 값
            ttl_seconds: 만료 시간 (None이면 만료 없음)
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """값 삭제 (키가 없으면 무시)"""
        ...

    async def close(self) -> None:
        """저장소 연결 해제"""
        return None
