"""
Worker 관련 예외 클래스 정의
"""


class WorkerError(Exception):
    """Worker 기본 예외"""
    pass


class HandlerNotFoundError(WorkerError):
    """핸들러를 찾을 수 없음"""
    def __init__(self, name: str):
        self.name = name
        self.message = f"No handler found for job type: {name}"
        super().__init__(self.message)


class JobTimeoutError(WorkerError):
    """잡 실행 시간 초과"""
    def __init__(self, job_id: str, timeout_seconds: float):
        self.job_id = job_id
        self.timeout_seconds = timeout_seconds
        self.message = "Job timeout"
        super().__init__(self.message)
