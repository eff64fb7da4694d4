# progress_api.py
from typing import List

from fastapi import APIRouter, Depends

from .context import AppContext, get_context
from .media_scan import normalize_content_path
from .models import ProgressIn, ProgressOut

router = APIRouter(prefix="/progress", tags=["progress"])

@router.get("", response_model=List[ProgressOut])
def api_list_progress(ctx: AppContext = Depends(get_context)):
    return [ProgressOut(video_path=p, last_playback_position=pos) for p, pos in ctx.progress.all()]

@router.post("", response_model=ProgressOut)
def api_save_progress(payload: ProgressIn, ctx: AppContext = Depends(get_context)):
    path = normalize_content_path(payload.video_path)
    ctx.progress.set(path, payload.position)
    return ProgressOut(video_path=path, last_playback_position=payload.position)

@router.get("/{content_path:path}", response_model=ProgressOut)
def api_get_progress(content_path: str, ctx: AppContext = Depends(get_context)):
    path = normalize_content_path(content_path)
    return ProgressOut(video_path=path, last_playback_position=ctx.progress.get(path))

@router.delete("/{content_path:path}")
def api_delete_progress(content_path: str, ctx: AppContext = Depends(get_context)):
    path = normalize_content_path(content_path)
    ctx.progress.delete(path)
    return {"ok": True, "videoPath": path}
