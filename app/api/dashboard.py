# app/api/dashboard.py

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_pipeline
from pipeline.state import PipelineContext

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


# =================================================
# Response Models
# =================================================


class DashboardSummary(BaseModel):
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    skipped: int
    existing: int
    today_processed: int
    queue_length: int
    is_processing: bool
    watching_folders: int


# =================================================
# API Endpoints
# =================================================


@router.get("/summary", response_model=DashboardSummary)
def get_dashboard_summary(ctx: PipelineContext = Depends(get_pipeline)):
    """
    대시보드 요약 통계

    - 상태별 파일 수
    - 오늘 처리 완료 수
    - 큐 길이 / 처리 중 여부 / 감시 중인 폴더 수
    """
    counts = ctx.store.count_by_status()

    today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
    queue = ctx.queue.status()
    watching = sum(1 for w in ctx.watchers.status() if w["watching"])

    return DashboardSummary(
        total=sum(counts.values()),
        today_processed=ctx.store.count_processed_since(today),
        queue_length=queue["queue_length"],
        is_processing=queue["is_processing"],
        watching_folders=watching,
        **counts,
    )
