"""Admin API (FastAPI 라우터 / 모델)"""
