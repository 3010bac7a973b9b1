"""Worker 패키지 - 핸들러 레지스트리, 실행기, 스케줄러"""
