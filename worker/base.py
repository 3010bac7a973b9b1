"""
핸들러 계약 및 레지스트리

핸들러는 잡 type 문자열로 선택되는 실행 단위입니다.
execute 는 필수, validate / estimate_duration 은 선택입니다.
"""

import importlib
import logging
import pkgutil
from abc import ABC, abstractmethod
from types import ModuleType
from typing import Any, Protocol

from worker.exception import HandlerNotFoundError
from worker.model.job import Job, JobPayload

__all__ = [
    'handler',
    'get_registered_handlers',
    'load_handler_modules',
    'BaseHandler',
    'JobHandler',
    'HandlerRegistry',
    'HandlerNotFoundError',
]

logger = logging.getLogger(__name__)

# @handler 로 선언된 핸들러 클래스 (모듈 레벨, 선언 정보만 보관)
_declared: dict[str, type["BaseHandler"]] = {}


def handler(name: str):
    """핸들러 클래스 선언 데코레이터"""
    def decorator(cls):
        cls.name = name
        _declared[name] = cls
        return cls
    return decorator


def get_registered_handlers() -> dict[str, type["BaseHandler"]]:
    """@handler 로 선언된 핸들러 클래스 목록 (테스트용)"""
    return _declared.copy()


def load_handler_modules(package: ModuleType) -> list[str]:
    """패키지 하위 모듈을 재귀 import (데코레이터 등록을 위해)"""
    loaded = []

    def load_recursive(pkg: ModuleType, prefix: str) -> None:
        for _, module_name, is_pkg in pkgutil.iter_modules(pkg.__path__):
            full_name = f"{prefix}.{module_name}"
            module = importlib.import_module(full_name)
            loaded.append(full_name)
            logger.debug(f"Loaded handler module: {full_name}")
            if is_pkg:
                load_recursive(module, full_name)

    load_recursive(package, package.__name__)
    return loaded


class JobHandler(Protocol):
    """레지스트리에 등록 가능한 핸들러 (execute 필수)"""

    async def execute(self, payload: JobPayload, job: Job) -> Any:
        ...


class BaseHandler(ABC):
    """잡 핸들러 기본 클래스"""

    name: str = ""

    @abstractmethod
    async def execute(self, payload: JobPayload, job: Job) -> Any:
        """
        잡 실행 로직

        Args:
            payload: 잡 페이로드 (type, data, metadata)
            job: 실행 중인 잡 레코드

        Returns:
            실행 결과 (job.result 에 저장)

        Raises:
            Exception: 실행 실패 시 예외 발생 (재시도 대상)
        """
        pass

    async def validate(self, payload: JobPayload) -> bool:
        """생성 시점 페이로드 검증 (기본: 통과)"""
        return True

    def estimate_duration(self, payload: JobPayload) -> float | None:
        """예상 실행 시간(초), 참고용"""
        return None


class HandlerRegistry:
    """
    잡 type -> 핸들러 매핑

    프로세스 전역이 아닌 명시적 객체로, JobService / Executor 가 소유합니다.
    같은 type 으로 다시 등록하면 마지막 등록이 유효합니다.
    """

    def __init__(self):
        self._handlers: dict[str, JobHandler] = {}

    @classmethod
    def with_builtin(cls, options: dict[str, dict[str, Any]] | None = None) -> "HandlerRegistry":
        """
        내장 핸들러를 등록한 레지스트리 생성

        Args:
            options: type별 핸들러 생성자 인자 (config/service.yaml 의 handlers 섹션)
        """
        from worker import builtin as builtin_pkg

        load_handler_modules(builtin_pkg)
        options = options or {}
        registry = cls()
        for name, handler_cls in _declared.items():
            registry.register(name, handler_cls(**options.get(name, {})))
        return registry

    def register(self, name: str, job_handler: JobHandler) -> None:
        """핸들러 등록"""
        if not callable(getattr(job_handler, "execute", None)):
            raise TypeError(f"Handler for '{name}' must provide an execute() method")
        if name in self._handlers:
            logger.info(f"Replacing handler: {name}")
        self._handlers[name] = job_handler
        logger.debug(f"Handler registered: {name}")

    def resolve(self, name: str) -> JobHandler | None:
        """핸들러 조회 (없으면 None)"""
        return self._handlers.get(name)

    def get(self, name: str) -> JobHandler:
        """핸들러 조회 (없으면 HandlerNotFoundError)"""
        found = self._handlers.get(name)
        if found is None:
            raise HandlerNotFoundError(name)
        return found

    def names(self) -> list[str]:
        return list(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
