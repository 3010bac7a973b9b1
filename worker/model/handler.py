"""
내장 핸들러 결과 모델

Executor는 pydantic 모델 결과를 JSON 호환 dict로 변환해 job.result에 저장합니다.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class HandlerResult(BaseModel):
    """핸들러 실행 결과 (공통)"""
    model_config = ConfigDict(extra='allow')


class NotificationResult(HandlerResult):
    """알림 발송 결과"""
    sent: bool = True
    to: str
    subject: str
    timestamp: datetime


class ReportResult(HandlerResult):
    """리포트 생성 결과"""
    report_id: str
    type: str
    user_id: str
    generated_at: datetime
    download_url: str


class DataProcessingResult(HandlerResult):
    """데이터 처리 결과"""
    operation: str
    processed: int
    timestamp: datetime
