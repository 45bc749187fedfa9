from fastapi import APIRouter, Depends
from datetime import datetime

from app.api.deps import get_pipeline
from pipeline.recovery import recover_pending_files
from pipeline.runner import restart_pipeline
from pipeline.state import PipelineContext

router = APIRouter(prefix="/pipeline", tags=["pipeline"])


# -------------------------
# 상태 확인
# -------------------------
@router.get("/status")
def pipeline_status(ctx: PipelineContext = Depends(get_pipeline)):
    uptime = None
    if ctx.started_at:
        uptime = (datetime.now() - ctx.started_at).total_seconds()

    state = ctx.store.get_processing_state()

    return {
        "running": ctx.is_running,
        "started_at": ctx.started_at,
        "uptime_seconds": uptime,
        "queue": ctx.queue.status(),
        "watchers": ctx.watchers.status(),
        "state": state.to_dict(),
    }


# -------------------------
# 재시작
# -------------------------
@router.post("/restart")
def pipeline_restart(ctx: PipelineContext = Depends(get_pipeline)):
    restart_pipeline(ctx)
    return {
        "status": "restarted",
        "timestamp": datetime.now(),
    }


# -------------------------
# 미완료 작업 복구
# -------------------------
@router.post("/recover")
def pipeline_recover(ctx: PipelineContext = Depends(get_pipeline)):
    result = recover_pending_files(ctx.store, ctx.queue)
    return {
        "status": "recovered",
        "result": result.to_dict(),
        "timestamp": datetime.now(),
    }
