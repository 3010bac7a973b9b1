"""Admin API 모델 패키지"""

from admin.api.model.common import Pagination
from admin.api.model.job import (
    JobCreateRequest,
    JobListResponse,
    ProcessorConfigRequest,
    ProgressRequest,
)

__all__ = [
    'Pagination',
    'JobCreateRequest',
    'JobListResponse',
    'ProcessorConfigRequest',
    'ProgressRequest',
]
