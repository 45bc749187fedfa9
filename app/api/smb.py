# app/api/smb.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.deps import get_pipeline
from pipeline.state import PipelineContext
from services.folder_resolver import parse_smb_url

router = APIRouter(prefix="/smb", tags=["smb"])


class SmbTestRequest(BaseModel):
    host: Optional[str] = Field(None, description="호스트 (또는 url)")
    share: Optional[str] = None
    username: str = ""
    password: str = ""
    url: Optional[str] = Field(None, description="UNC / smb:// / NAS 웹 주소")


@router.post("/test")
def test_smb(req: SmbTestRequest, ctx: PipelineContext = Depends(get_pipeline)):
    """
    공유폴더 연결 테스트

    url 을 주면 host/share 를 파싱해서 사용 (NAS 웹 UI 주소면 share 는 직접 입력해야 함)
    """
    host, share = req.host, req.share

    if req.url:
        parsed = parse_smb_url(req.url)
        host = host or parsed.get("host")
        share = share or parsed.get("share")
        if parsed.get("is_web_ui") and not share:
            return {
                "success": False,
                "error": "NAS 웹 관리 주소입니다. 공유폴더 이름을 입력하세요.",
                "parsed": parsed,
            }

    if not host or not share:
        raise HTTPException(status_code=400, detail="호스트와 공유폴더 이름이 필요합니다.")

    return ctx.resolver.test_connection(host, share, req.username, req.password)


@router.get("/status")
def smb_status(ctx: PipelineContext = Depends(get_pipeline)):
    return {"connections": [c.to_dict() for c in ctx.resolver.connection_status()]}
