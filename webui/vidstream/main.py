# main.py: FastAPI app: browse the media tree, stream files, store playback progress
import os, logging
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from .config import Settings, load_settings
from .context import AppContext, get_context
from .errors import ContentNotFound, InvalidContentPath, ProgressStoreError, RangeNotSatisfiable
from .media_scan import (
    DirectoryNode, FileNode, TreeNode,
    build_root_tree, check_mount_status, find_item_by_path, normalize_content_path, path_segments,
)
from .models import BrowseResponse, HealthResponse, MountStatusOut, NodeOut, VideoOut
from .progress_api import router as progress_router
from .progress_store import ProgressStore
from .streaming import content_type_for, stream_file

log = logging.getLogger(__name__)

router = APIRouter()

def _quoted(content_path: str) -> str:
    return quote(content_path, safe="/")

def _mtime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)

def _node_out(node: TreeNode, ctx: AppContext) -> NodeOut:
    if isinstance(node, DirectoryNode):
        return NodeOut(
            type="directory",
            file_name=node.file_name,
            display_name=node.display_name,
            content_path=node.content_path,
            url="/browse" + _quoted(node.content_path),
            video_count=node.video_count,
        )
    if isinstance(node, FileNode):
        return NodeOut(
            type="file",
            file_name=node.file_name,
            display_name=node.display_name,
            content_path=node.content_path,
            url="/video" + _quoted(node.content_path),
            size=node.size,
            modified=_mtime(node.modified),
            last_playback_position=ctx.progress.get(node.content_path),
        )
    raise TypeError(f"unknown tree node {node!r}")

def _resolve(ctx: AppContext, content_path: str) -> TreeNode:
    path = normalize_content_path(content_path)
    node = find_item_by_path(ctx.tree, path)
    if node is None:
        raise ContentNotFound(path)
    return node

def _resolve_file(ctx: AppContext, content_path: str) -> FileNode:
    node = _resolve(ctx, content_path)
    if not isinstance(node, FileNode):
        raise ContentNotFound(node.content_path)
    return node

# ========== browse ==========
@router.get("/browse", response_model=BrowseResponse)
@router.get("/browse/{content_path:path}", response_model=BrowseResponse)
def api_browse(content_path: str = "", ctx: AppContext = Depends(get_context)):
    node = _resolve(ctx, content_path)
    if not isinstance(node, DirectoryNode):
        raise InvalidContentPath(node.content_path)
    return BrowseResponse(
        file_name=node.file_name,
        display_name=node.display_name,
        content_path=node.content_path,
        video_count=node.video_count,
        breadcrumb=path_segments(node.content_path),
        children=[_node_out(c, ctx) for c in node.children],
    )

# ========== player metadata ==========
@router.get("/video/{content_path:path}", response_model=VideoOut)
def api_video(content_path: str, ctx: AppContext = Depends(get_context)):
    node = _resolve_file(ctx, content_path)
    return VideoOut(
        file_name=node.file_name,
        display_name=node.display_name,
        content_path=node.content_path,
        size=node.size,
        modified=_mtime(node.modified),
        mime_type=content_type_for(node.system_path),
        stream_url="/stream" + _quoted(node.content_path),
        last_playback_position=ctx.progress.get(node.content_path),
    )

# ========== media ==========
@router.get("/stream/{content_path:path}")
def media_stream(request: Request, content_path: str, ctx: AppContext = Depends(get_context)):
    node = _resolve_file(ctx, content_path)
    return stream_file(node, request.headers.get("range"), ctx.settings.chunk_size)

@router.get("/health", response_model=HealthResponse)
def health(ctx: AppContext = Depends(get_context)):
    mounts: List[MountStatusOut] = []
    for m in ctx.settings.mounts:
        status, error = check_mount_status(m.system_path)
        mounts.append(MountStatusOut(
            display_name=m.display_name,
            system_path=m.system_path,
            mount_point=m.mount_point,
            status=status,
            error=error,
        ))
    return HealthResponse(mounts=mounts, video_count=ctx.tree.video_count, max_depth=ctx.settings.max_depth)

# ========== errors ==========
def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)

def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ContentNotFound)
    async def _not_found(request: Request, exc: ContentNotFound):
        return _error(404, f"Not found: {exc}")

    @app.exception_handler(InvalidContentPath)
    async def _invalid_path(request: Request, exc: InvalidContentPath):
        return _error(400, f"Path is not a directory: {exc}")

    @app.exception_handler(RangeNotSatisfiable)
    async def _bad_range(request: Request, exc: RangeNotSatisfiable):
        return Response(status_code=416, headers={
            "Content-Range": f"bytes */{exc.file_size}",
            "Accept-Ranges": "bytes",
        })

    @app.exception_handler(ProgressStoreError)
    async def _store_failed(request: Request, exc: ProgressStoreError):
        return _error(500, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "invalid request", "detail": jsonable_encoder(exc.errors())}, status_code=400)

def log_mount_status(settings: Settings) -> None:
    for m in settings.mounts:
        status, error = check_mount_status(m.system_path)
        if status == "accessible":
            log.info("mount %s: %s (%s)", m.display_name, m.system_path, m.description)
        else:
            log.warning("mount %s: %s (%s) unavailable: %s", m.display_name, m.system_path, m.description, error)

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    log_mount_status(settings)

    ctx = AppContext(
        settings=settings,
        tree=build_root_tree(settings.mounts, settings.max_depth),
        progress=ProgressStore(settings.progress_file),
    )
    log.info("indexed %d videos under %d mounts", ctx.tree.video_count, len(ctx.tree.children))

    app = FastAPI(title="Video Streaming Server")
    app.state.ctx = ctx
    _install_error_handlers(app)
    app.include_router(router)
    app.include_router(progress_router)
    return app

def run() -> None:
    import uvicorn

    logging.basicConfig(
        level=os.getenv("VIDSTREAM_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)

if __name__ == "__main__":
    run()
