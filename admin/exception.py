"""
Admin 관련 예외 클래스 정의
"""


class AdminError(Exception):
    """Admin 기본 예외"""
    pass


class ServiceNotReadyError(AdminError):
    """JobService 가 아직 초기화되지 않음"""
    def __init__(self):
        self.message = "Job service is not initialized"
        super().__init__(self.message)
