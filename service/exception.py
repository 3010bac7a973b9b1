"""
JobService 예외 클래스 정의

호출자에게 동기적으로 전달되는 오류입니다. 실행 중 오류(Timeout, HandlerError 등)는
예외로 던지지 않고 job.error 에 기록됩니다.
"""

from worker.model.job import ErrorCode


class JobQueueError(Exception):
    """JobService 기본 예외"""
    code: ErrorCode | None = None


class InvalidPayloadError(JobQueueError):
    """핸들러 validate 가 페이로드를 거부함 (저장되지 않음)"""
    code = ErrorCode.INVALID_PAYLOAD

    def __init__(self, job_type: str):
        self.job_type = job_type
        self.message = f"Invalid job payload for type: {job_type}"
        super().__init__(self.message)


class JobNotFoundError(JobQueueError):
    """잡을 찾을 수 없음"""
    code = ErrorCode.NOT_FOUND

    def __init__(self, job_id: str):
        self.job_id = job_id
        self.message = f"Job not found: {job_id}"
        super().__init__(self.message)


class InvalidStateError(JobQueueError):
    """현재 상태에서 허용되지 않는 작업 (retry / cancel)"""
    code = ErrorCode.INVALID_STATE

    def __init__(self, job_id: str, operation: str, current_status: str):
        self.job_id = job_id
        self.operation = operation
        self.current_status = current_status
        self.message = f"Cannot {operation} job with status: {current_status}"
        super().__init__(self.message)
