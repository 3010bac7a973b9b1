"""
Store 관련 예외 클래스 정의
"""


class StoreError(Exception):
    """Store 기본 예외"""
    pass


class StoreNotInitializedError(StoreError):
    """초기화되지 않았거나 이미 닫힌 저장소"""
    def __init__(self, name: str):
        self.name = name
        self.message = f"Store '{name}' is not initialized or already closed"
        super().__init__(self.message)


class StoreSerializationError(StoreError):
    """저장된 값 역직렬화 실패"""
    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        self.message = f"Failed to decode value for key '{key}': {reason}"
        super().__init__(self.message)
