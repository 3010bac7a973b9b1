"""Admin API 라우터 (잡 / 스케줄러 API 통합)"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from admin.api.model.common import Pagination
from admin.api.model.job import (
    JobCreateRequest,
    JobListResponse,
    ProcessorConfigRequest,
    ProgressRequest,
)
from admin.exception import ServiceNotReadyError
from service import InvalidPayloadError, InvalidStateError, JobNotFoundError, JobService
from worker.model.job import Job, JobFilter, JobStats, JobStatus, ProcessorStatus

logger = logging.getLogger(__name__)

router = APIRouter()


def get_job_service(request: Request) -> JobService:
    """app.state 에 보관된 JobService"""
    service = getattr(request.app.state, "job_service", None)
    if service is None:
        raise ServiceNotReadyError()
    return service


# ============================================
# JOB API
# ============================================

@router.get("/api/jobs", response_model=JobListResponse, tags=["Job"])
async def get_jobs(
    status: JobStatus | None = Query(default=None, description="상태 필터"),
    job_type: str | None = Query(default=None, alias="type", description="잡 type 필터"),
    tags: str | None = Query(default=None, description="태그 필터 (쉼표 구분, 하나라도 일치)"),
    limit: int = Query(default=50, ge=1, le=500, description="최대 건수"),
    offset: int = Query(default=0, ge=0, description="시작 위치"),
    start_date: datetime | None = Query(default=None, description="생성일 시작"),
    end_date: datetime | None = Query(default=None, description="생성일 종료"),
    service: JobService = Depends(get_job_service),
):
    """잡 목록 조회"""
    job_filter = JobFilter(
        status=status,
        type=job_type or None,
        tags=[tag for tag in tags.split(",") if tag] if tags else None,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    jobs = await service.get_jobs(job_filter)
    stats = await service.get_job_stats()
    return JobListResponse(
        jobs=jobs,
        stats=stats,
        pagination=Pagination(limit=limit, offset=offset, total=stats.total),
    )


@router.post("/api/jobs", response_model=Job, status_code=201, tags=["Job"])
async def create_job(request: JobCreateRequest, service: JobService = Depends(get_job_service)):
    """잡 생성"""
    try:
        return await service.create_job(request.to_payload(), request.to_options())
    except InvalidPayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/api/jobs/stats", response_model=JobStats, tags=["Job"])
async def get_job_stats(service: JobService = Depends(get_job_service)):
    """상태별 잡 수"""
    return await service.get_job_stats()


@router.get("/api/jobs/{job_id}", response_model=Job, tags=["Job"])
async def get_job(job_id: str, service: JobService = Depends(get_job_service)):
    """잡 상세 조회"""
    job = await service.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=str(JobNotFoundError(job_id)))
    return job


@router.post("/api/jobs/{job_id}/retry", response_model=Job, tags=["Job"])
async def retry_job(job_id: str, service: JobService = Depends(get_job_service)):
    """실패한 잡 재시도"""
    try:
        return await service.retry_job(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/api/jobs/{job_id}/cancel", response_model=Job, tags=["Job"])
async def cancel_job(job_id: str, service: JobService = Depends(get_job_service)):
    """잡 취소"""
    try:
        return await service.cancel_job(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.put("/api/jobs/{job_id}/progress", tags=["Job"])
async def update_job_progress(
    job_id: str,
    request: ProgressRequest,
    service: JobService = Depends(get_job_service),
):
    """진행률 갱신 (PROCESSING 상태가 아니면 무시)"""
    updated = await service.update_job_progress(job_id, request.progress)
    return {"accepted": updated is not None}


@router.delete("/api/jobs/{job_id}", status_code=204, tags=["Job"])
async def delete_job(job_id: str, service: JobService = Depends(get_job_service)):
    """잡 삭제 (없어도 204)"""
    await service.delete_job(job_id)
    return Response(status_code=204)


# ============================================
# PROCESSOR API
# ============================================

@router.get("/api/processor", response_model=ProcessorStatus, tags=["Processor"])
async def get_processor_status(service: JobService = Depends(get_job_service)):
    """스케줄러 상태"""
    return service.get_processor_status()


@router.put("/api/processor", response_model=ProcessorStatus, tags=["Processor"])
async def configure_processor(
    request: ProcessorConfigRequest,
    service: JobService = Depends(get_job_service),
):
    """스케줄러 설정 변경"""
    await service.configure(
        max_concurrent_jobs=request.max_concurrent_jobs,
        poll_interval_seconds=request.poll_interval_seconds,
    )
    return service.get_processor_status()


@router.post("/api/processor/start", response_model=ProcessorStatus, tags=["Processor"])
async def start_processor(service: JobService = Depends(get_job_service)):
    """스케줄러 시작"""
    await service.start()
    return service.get_processor_status()


@router.post("/api/processor/stop", response_model=ProcessorStatus, tags=["Processor"])
async def stop_processor(service: JobService = Depends(get_job_service)):
    """스케줄러 중지"""
    await service.stop()
    return service.get_processor_status()


# ============================================
# Health Check
# ============================================

@router.get("/health", tags=["Health"])
async def health_check(request: Request):
    """서버 상태 확인 (liveness probe)"""
    service = getattr(request.app.state, "job_service", None)
    return {
        "status": "healthy",
        "scheduler": "running" if service and service.get_processor_status().is_running else "stopped",
        "version": "1.0.0",
    }
