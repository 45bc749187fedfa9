# app/api/folders.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.deps import get_pipeline, to_http_error
from models.folder import FOLDER_LOCAL
from pipeline.exceptions import PipelineError
from pipeline.state import PipelineContext

logger = logging.getLogger("api")

router = APIRouter(prefix="/folders", tags=["folders"])


# =================================================
# Request Models
# =================================================

class FolderCreate(BaseModel):
    alias: str = Field(..., description="폴더 별칭")
    path: str = Field("", description="로컬 경로 또는 공유폴더 내부 하위 경로")
    folder_type: str = Field(FOLDER_LOCAL, description="local, remote")
    smb_host: Optional[str] = None
    smb_share: Optional[str] = None
    smb_username: Optional[str] = None
    smb_password: Optional[str] = None
    is_active: bool = True
    dept_codes: List[str] = Field(default_factory=list)


class FolderUpdate(BaseModel):
    alias: Optional[str] = None
    path: Optional[str] = None
    folder_type: Optional[str] = None
    smb_host: Optional[str] = None
    smb_share: Optional[str] = None
    smb_username: Optional[str] = None
    smb_password: Optional[str] = None
    is_active: Optional[bool] = None
    dept_codes: Optional[List[str]] = None


def _folder_response(ctx: PipelineContext, folder) -> dict:
    data = folder.to_dict()
    data["dept_codes"] = ctx.store.get_dept_codes(folder.id)
    data["watching"] = ctx.watchers.is_watching(folder.id)
    return data


# =================================================
# API Endpoints
# =================================================

@router.get("")
def list_folders(ctx: PipelineContext = Depends(get_pipeline)):
    return {"folders": [_folder_response(ctx, f) for f in ctx.store.list_folders()]}


@router.get("/{folder_id}")
def get_folder(folder_id: int, ctx: PipelineContext = Depends(get_pipeline)):
    folder = ctx.store.get_folder(folder_id)
    if not folder:
        raise HTTPException(status_code=404, detail="폴더를 찾을 수 없습니다.")
    return _folder_response(ctx, folder)


@router.post("", status_code=201)
def create_folder(req: FolderCreate, ctx: PipelineContext = Depends(get_pipeline)):
    try:
        folder = ctx.store.create_folder(**req.model_dump())
    except PipelineError as e:
        raise to_http_error(e)

    ctx.store.add_log(None, "FOLDER", f"폴더 추가: {folder.alias}", details=folder.path)

    watch = None
    if folder.is_active:
        watch = ctx.watchers.watch(folder).to_dict()

    return {"folder": _folder_response(ctx, folder), "watch": watch}


@router.patch("/{folder_id}")
def update_folder(folder_id: int, req: FolderUpdate, ctx: PipelineContext = Depends(get_pipeline)):
    """
    폴더 설정 변경

    - is_active 변경 시 감시 시작/중지
    - 경로/접속 정보 변경 시 감시 중이면 다시 시작
    """
    fields = req.model_dump(exclude_unset=True)
    dept_codes = fields.pop("dept_codes", None)

    try:
        folder = ctx.store.update_folder(folder_id, **fields)
    except PipelineError as e:
        raise to_http_error(e)

    if dept_codes is not None:
        ctx.store.set_dept_codes(folder_id, dept_codes)

    ctx.store.add_log(None, "FOLDER", f"폴더 수정: {folder.alias}", details=", ".join(sorted(fields)))

    watch = None
    location_changed = bool(set(fields) - {"alias", "is_active"})

    if not folder.is_active:
        ctx.watchers.unwatch(folder_id)
    else:
        if location_changed:
            ctx.watchers.unwatch(folder_id)
        watch = ctx.watchers.watch(folder).to_dict()

    return {"folder": _folder_response(ctx, folder), "watch": watch}


@router.delete("/{folder_id}")
def delete_folder(folder_id: int, ctx: PipelineContext = Depends(get_pipeline)):
    folder = ctx.store.get_folder(folder_id)
    if not folder:
        raise HTTPException(status_code=404, detail="폴더를 찾을 수 없습니다.")

    ctx.watchers.unwatch(folder_id)
    ctx.store.delete_folder(folder_id)
    ctx.store.add_log(None, "FOLDER", f"폴더 삭제: {folder.alias}", details=folder.path)

    return {"success": True, "message": f"폴더 삭제 완료: {folder.alias}"}


@router.post("/{folder_id}/scan")
def scan_folder(folder_id: int, ctx: PipelineContext = Depends(get_pipeline)):
    try:
        result = ctx.scanner.rescan(folder_id)
    except PipelineError as e:
        raise to_http_error(e)

    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error)

    return {"success": True, **result.to_dict()}
