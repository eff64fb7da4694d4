# config.py
import os, json, logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from pydantic import ValidationError

from .errors import ConfigError
from .models import MountsFile, TopLevelMount

log = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10
DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024  # LAN: larger chunks
DEFAULT_PORT = 3001

@dataclass(frozen=True)
class Settings:
    mounts: List[TopLevelMount] = field(default_factory=list)
    max_depth: int = DEFAULT_MAX_DEPTH
    progress_file: str = os.path.join("data", "progress.json")
    chunk_size: int = DEFAULT_CHUNK_SIZE
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

def load_mounts_file(path: str) -> MountsFile:
    """
    Read the mount configuration. Accepts a bare list of mounts or
    {"maxDepth": n, "mounts": [...]}. A missing file yields no mounts.
    """
    if not os.path.exists(path):
        log.warning("mount config %s not found, starting with no mounts", path)
        return MountsFile()
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read mount config {path}: {e}") from e

    if isinstance(raw, list):
        raw = {"mounts": raw}
    try:
        return MountsFile.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid mount config {path}: {e}") from e

def _int_env(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    v = env.get(name)
    if v is None or v.strip() == "":
        return default
    try:
        return int(v)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {v!r}")

def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    data_dir = env.get("VIDSTREAM_DATA_DIR", "data")
    mounts_path = env.get("VIDSTREAM_MOUNTS", os.path.join(data_dir, "mounts.json"))
    mounts_file = load_mounts_file(mounts_path)

    max_depth = _int_env(env, "VIDSTREAM_MAX_DEPTH", None)
    if max_depth is None:
        max_depth = mounts_file.max_depth if mounts_file.max_depth is not None else DEFAULT_MAX_DEPTH
    if max_depth < 0:
        raise ConfigError("VIDSTREAM_MAX_DEPTH must be >= 0")

    chunk_size = _int_env(env, "VIDSTREAM_CHUNK_SIZE", DEFAULT_CHUNK_SIZE)
    if chunk_size <= 0:
        raise ConfigError("VIDSTREAM_CHUNK_SIZE must be > 0")

    return Settings(
        mounts=list(mounts_file.mounts),
        max_depth=max_depth,
        progress_file=env.get("VIDSTREAM_PROGRESS_FILE", os.path.join(data_dir, "progress.json")),
        chunk_size=chunk_size,
        host=env.get("VIDSTREAM_HOST", "0.0.0.0"),
        port=_int_env(env, "VIDSTREAM_PORT", DEFAULT_PORT),
    )
