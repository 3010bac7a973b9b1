"""
jobq 통합 진입점

잡 스케줄러(worker)와 Admin API를 한 번에 실행합니다.

사용법:
    python main.py                 # 전체 실행
    python main.py worker          # 스케줄러만
    python main.py admin           # Admin API만 (잡 생성/조회, 스케줄러는 정지 상태)
"""

import sys
import os

# Windows 인코딩 설정 (cp949 -> UTF-8)
if sys.platform == "win32":
    os.environ["PYTHONUTF8"] = "1"

import asyncio
import signal
import logging

from common.config import load_config
from common.logging import setup_logging
from service import JobService

logger = logging.getLogger(__name__)


async def run_admin(config: dict, service: JobService, stop_event: asyncio.Event):
    """Admin API 실행"""
    import uvicorn
    from admin.main import create_app

    admin_config = config.get("admin", {})
    uv_config = uvicorn.Config(
        create_app(service=service, config=config),
        host=admin_config.get("host", "0.0.0.0"),
        port=admin_config.get("port", 8080),
        log_level="info",
    )
    server = uvicorn.Server(uv_config)

    async def wait_stop():
        await stop_event.wait()
        server.should_exit = True

    asyncio.create_task(wait_stop())
    await server.serve()


async def main(modules: list[str]):
    """메인 함수"""
    config = load_config("service", "admin")

    # 로깅 설정
    setup_logging(**config.get("logging", {}))

    service = await JobService.from_config(config)

    # 종료 이벤트
    stop_event = asyncio.Event()

    # 시그널 핸들러
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    # Windows는 add_signal_handler를 지원하지 않음
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

    if "worker" in modules:
        await service.start()
        logger.info("Worker started")

    tasks = []
    if "admin" in modules:
        tasks.append(asyncio.create_task(run_admin(config, service, stop_event)))
        logger.info("Admin API started")
    else:
        tasks.append(asyncio.create_task(stop_event.wait()))

    try:
        await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        logger.info("Tasks cancelled")
    finally:
        await service.shutdown()
        logger.info("All modules stopped")


if __name__ == "__main__":
    # 인자 파싱
    args = sys.argv[1:]
    valid_modules = {"worker", "admin"}

    if args:
        modules = [m for m in args if m in valid_modules]
        if not modules:
            print("Usage: python main.py [worker] [admin]")
            sys.exit(1)
    else:
        modules = ["worker", "admin"]

    print(f"Starting jobq: {', '.join(modules)}")
    try:
        asyncio.run(main(modules))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
