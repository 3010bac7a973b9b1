"""내장 핸들러 패키지 (HandlerRegistry.with_builtin() 에서 재귀 로드)"""
