# context.py
from dataclasses import dataclass

from fastapi import Request

from .config import Settings
from .media_scan import DirectoryNode
from .progress_store import ProgressStore


@dataclass(frozen=True)
class AppContext:
    """Everything a request handler needs; built once in create_app()."""
    settings: Settings
    tree: DirectoryNode
    progress: ProgressStore


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx
