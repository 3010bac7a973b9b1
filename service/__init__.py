"""JobService 패키지 - 잡 큐 공개 API"""

from service.exception import (
    InvalidPayloadError,
    InvalidStateError,
    JobNotFoundError,
    JobQueueError,
)
from service.main import JobService
from service.model import ServiceConfig, StoreConfig

__all__ = [
    "JobService",
    "ServiceConfig",
    "StoreConfig",
    "JobQueueError",
    "InvalidPayloadError",
    "InvalidStateError",
    "JobNotFoundError",
]
