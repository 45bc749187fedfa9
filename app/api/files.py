# app/api/files.py

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from app.api.deps import get_pipeline, to_http_error
from models.file_process import STATUSES
from pipeline.exceptions import PipelineError
from pipeline.state import PipelineContext
from pipeline.store import FileFilter

logger = logging.getLogger("api")

router = APIRouter(prefix="/files", tags=["files"])


class RenameRequest(BaseModel):
    new_filename: str = Field(..., description="변경할 파일명 (.pdf 생략 가능)")


@router.get("")
def list_files(
    status: Optional[str] = None,
    folder_id: Optional[List[int]] = Query(None),
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    ctx: PipelineContext = Depends(get_pipeline),
):
    """
    파일 처리 목록

    - status: pending, processing, completed, failed, skipped, existing
    - folder_id: 여러 번 지정 가능
    - search: 원본/변경 파일명, 업체명, 내용요약 부분 일치
    """
    if status and status not in STATUSES:
        raise HTTPException(status_code=400, detail=f"알 수 없는 상태: {status}")

    items, total = ctx.store.list_files(FileFilter(
        status=status,
        folder_ids=folder_id,
        search=search,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    ))

    return {
        "items": [item.to_dict() for item in items],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/{file_id}")
def get_file(file_id: int, ctx: PipelineContext = Depends(get_pipeline)):
    record = ctx.store.get_file(file_id)
    if not record:
        raise HTTPException(status_code=404, detail="파일 처리 기록을 찾을 수 없습니다.")

    data = record.to_dict()
    data["ocr_text"] = record.ocr_text
    data["logs"] = [
        log.to_dict()
        for log in reversed(ctx.store.list_logs(file_process_id=file_id, limit=500))
    ]
    return data


@router.patch("/{file_id}")
def rename_file(file_id: int, req: RenameRequest, ctx: PipelineContext = Depends(get_pipeline)):
    try:
        record = ctx.actions.manual_rename(file_id, req.new_filename)
    except PipelineError as e:
        raise to_http_error(e)

    return {
        "success": True,
        "message": f"파일명 변경 완료: {record.new_filename}",
        "file": record.to_dict(),
    }


@router.post("/{file_id}/reprocess")
def reprocess_file(file_id: int, ctx: PipelineContext = Depends(get_pipeline)):
    try:
        record = ctx.actions.reprocess_file(file_id)
    except PipelineError as e:
        raise to_http_error(e)

    logger.info(f"[API] reprocess requested: {file_id} -> {record.id}")
    return {
        "success": True,
        "message": "재처리 대기열에 추가되었습니다.",
        "file": record.to_dict(),
    }
