"""공통 모델 정의"""

from pydantic import BaseModel


class Pagination(BaseModel):
    """페이징 정보 (total 은 전체 잡 수)"""
    limit: int
    offset: int
    total: int
