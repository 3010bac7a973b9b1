"""
Worker 모델 - 잡 레코드 및 핸들러 결과
"""

from worker.model.job import (
    MAX_PRIORITY,
    MIN_PRIORITY,
    ErrorCode,
    Job,
    JobError,
    JobFilter,
    JobOptions,
    JobPayload,
    JobStats,
    JobStatus,
    ProcessorStatus,
    utcnow,
)
from worker.model.handler import (
    DataProcessingResult,
    HandlerResult,
    NotificationResult,
    ReportResult,
)

__all__ = [
    'MAX_PRIORITY',
    'MIN_PRIORITY',
    'ErrorCode',
    'Job',
    'JobError',
    'JobFilter',
    'JobOptions',
    'JobPayload',
    'JobStats',
    'JobStatus',
    'ProcessorStatus',
    'utcnow',
    'HandlerResult',
    'NotificationResult',
    'ReportResult',
    'DataProcessingResult',
]
