"""Admin API 서버 진입점"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from admin.api.router.api import router
from admin.exception import ServiceNotReadyError
from common.config import load_config
from service import JobService

logger = logging.getLogger(__name__)


def create_app(service: JobService | None = None, config: dict[str, Any] | None = None) -> FastAPI:
    """
    FastAPI 앱 생성

    Args:
        service: 외부에서 생성한 JobService (지정 시 lifespan 에서 생성/종료하지 않음)
        config: service.yaml + admin.yaml 병합 설정 (미지정 시 config/ 에서 로드)
    """
    config = config if config is not None else load_config("service", "admin")
    admin_config = config.get('admin', {})

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """앱 생명주기 관리"""
        owned = app.state.job_service is None
        if owned:
            app.state.job_service = await JobService.from_config(config)
            await app.state.job_service.start()
            logger.info("Job service started")

        yield

        if owned:
            await app.state.job_service.shutdown()
            app.state.job_service = None
            logger.info("Job service stopped")

    app = FastAPI(
        title="jobq Admin API",
        description="백그라운드 잡 큐 관리 Admin API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.job_service = service

    # CORS 설정
    cors_config = admin_config.get('cors', {})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.get('origins', ['*']),
        allow_credentials=cors_config.get('allow_credentials', True),
        allow_methods=cors_config.get('allow_methods', ['*']),
        allow_headers=cors_config.get('allow_headers', ['*']),
    )

    @app.exception_handler(ServiceNotReadyError)
    async def service_not_ready(request: Request, exc: ServiceNotReadyError):
        return JSONResponse(status_code=503, content={"detail": exc.message})

    # API 라우터 등록
    app.include_router(router)

    return app


if __name__ == "__main__":
    import uvicorn

    from common.logging import setup_logging

    config = load_config("service", "admin")
    admin_config = config.get('admin', {})
    setup_logging(**config.get('logging', {}))

    uvicorn.run(
        create_app(config=config),
        host=admin_config.get('host', '0.0.0.0'),
        port=admin_config.get('port', 8080),
    )
