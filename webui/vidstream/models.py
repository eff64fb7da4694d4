# models.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========= config =========

class TopLevelMount(CamelModel):
    display_name: str
    system_path: str
    mount_point: str
    description: str = ""

    @field_validator("mount_point")
    @classmethod
    def _single_segment(cls, v: str) -> str:
        v = v.strip()
        if not v or "/" in v or v in (".", ".."):
            raise ValueError(f"mountPoint must be a single path segment, got {v!r}")
        return v


class MountsFile(CamelModel):
    max_depth: Optional[int] = Field(default=None, ge=0)
    mounts: List[TopLevelMount] = Field(default_factory=list)

    @field_validator("mounts")
    @classmethod
    def _unique_mount_points(cls, v: List[TopLevelMount]) -> List[TopLevelMount]:
        seen = set()
        for m in v:
            if m.mount_point in seen:
                raise ValueError(f"duplicate mountPoint {m.mount_point!r}")
            seen.add(m.mount_point)
        return v


# ========= API =========

class NodeOut(CamelModel):
    type: Literal["directory", "file"]
    file_name: str
    display_name: str
    content_path: str
    url: str
    video_count: Optional[int] = None
    size: Optional[int] = None
    modified: Optional[datetime] = None
    last_playback_position: Optional[float] = None


class BrowseResponse(CamelModel):
    file_name: str
    display_name: str
    content_path: str
    video_count: int
    breadcrumb: List[str]
    children: List[NodeOut]


class VideoOut(CamelModel):
    file_name: str
    display_name: str
    content_path: str
    size: int
    modified: datetime
    mime_type: str
    stream_url: str
    last_playback_position: float


class ProgressIn(CamelModel):
    video_path: StrictStr
    position: float = Field(ge=0, strict=True, allow_inf_nan=False)


class ProgressOut(CamelModel):
    video_path: str
    last_playback_position: float


class MountStatusOut(CamelModel):
    display_name: str
    system_path: str
    mount_point: str
    status: str
    error: Optional[str] = None


class HealthResponse(CamelModel):
    mounts: List[MountStatusOut]
    video_count: int
    max_depth: int
