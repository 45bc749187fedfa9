# api/logs.py
import asyncio
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from app.api.deps import get_pipeline
from config.paths import LOG_FILE as _LOG_FILE
from pipeline.state import PipelineContext

router = APIRouter(tags=["logs"])

LOG_FILE = Path(_LOG_FILE)


@router.get("/logs")
def read_process_logs(
    file_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=1000),
    ctx: PipelineContext = Depends(get_pipeline),
):
    """처리 로그 (최신순)"""
    logs = ctx.store.list_logs(file_process_id=file_id, limit=limit)
    return {"logs": [log.to_dict() for log in logs]}


@router.get("/logs/system")
def read_system_logs(limit: int = Query(200, ge=1, le=5000)):
    """시스템 로그 파일 마지막 limit 줄 (polling용)"""
    if not LOG_FILE.exists():
        return {"logs": []}

    lines = LOG_FILE.read_text(encoding="utf-8", errors="ignore").splitlines()
    return {
        "logs": lines[-limit:]
    }


@router.get("/logs/stream")
async def stream_logs():
    """
    SSE(Server-Sent Events) 기반 실시간 로그 스트리밍

    - 파일 변경 감지하여 새 로그만 전송
    - 클라이언트 연결 유지
    """
    async def log_generator():
        # 파일이 없으면 생성될 때까지 대기
        while not LOG_FILE.exists():
            yield "data: [SYSTEM] Waiting for log file...\n\n"
            await asyncio.sleep(2)

        # 초기 위치를 파일 끝으로 설정 (기존 로그는 건너뛰기)
        try:
            last_position = LOG_FILE.stat().st_size
        except FileNotFoundError:
            last_position = 0

        yield "data: [SYSTEM] Log streaming started\n\n"

        while True:
            try:
                current_size = LOG_FILE.stat().st_size

                # 로테이션 / truncate
                if current_size < last_position:
                    last_position = 0

                if current_size > last_position:
                    with open(LOG_FILE, "r", encoding="utf-8", errors="ignore") as f:
                        f.seek(last_position)
                        new_content = f.read()
                        last_position = f.tell()

                    for line in new_content.strip().split("\n"):
                        if line.strip():
                            yield f"data: {line}\n\n"

            except FileNotFoundError:
                yield "data: [SYSTEM] Log file not found, waiting...\n\n"
            except OSError as e:
                yield f"data: [ERROR] {e}\n\n"

            await asyncio.sleep(0.1)

    return StreamingResponse(
        log_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # nginx 버퍼링 비활성화
        }
    )
