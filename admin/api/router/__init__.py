"""Admin API 라우터"""
