# progress_store.py: last playback position per content path, kept in one JSON record
import os, json, logging, threading
from typing import Dict, List, Tuple

from .errors import ProgressStoreError

log = logging.getLogger(__name__)

class ProgressStore:
    """
    JSON-backed mapping contentPath -> {"lastPlaybackPosition": seconds}.

    The record is read once when the store is opened and rewritten in full
    after every mutation. A failed write raises ProgressStoreError and leaves
    the in-memory mapping untouched.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._data: Dict[str, float] = {}
        self._ensure_exists()
        self._data = self._read()

    def _ensure_exists(self) -> None:
        if os.path.exists(self.path):
            return
        try:
            parent = os.path.dirname(self.path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            self._write({})
            log.info("created empty progress record %s", self.path)
        except (OSError, ProgressStoreError) as e:
            # reading below falls back to an empty mapping
            log.error("cannot create progress record %s: %s", self.path, e)

    def _read(self) -> Dict[str, float]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            log.error("cannot read progress record %s, starting empty: %s", self.path, e)
            return {}
        return _parse_record(raw, self.path)

    def _write(self, data: Dict[str, float]) -> None:
        """Write to a temp file next to the record, then replace it."""
        tmp_file = self.path + ".tmp"
        payload = {k: {"lastPlaybackPosition": v} for k, v in data.items()}
        try:
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_file, self.path)
        except OSError as e:
            log.error("cannot write progress record %s: %s", self.path, e)
            try:
                if os.path.exists(tmp_file):
                    os.remove(tmp_file)
            except OSError:
                pass
            raise ProgressStoreError(f"cannot write progress record {self.path}: {e}") from e

    def get(self, content_path: str) -> float:
        return self._data.get(content_path, 0)

    def set(self, content_path: str, position: float) -> None:
        with self._lock:
            data = dict(self._data)
            data[content_path] = position
            self._write(data)
            self._data = data

    def delete(self, content_path: str) -> None:
        with self._lock:
            data = dict(self._data)
            data.pop(content_path, None)
            self._write(data)
            self._data = data

    def all(self) -> List[Tuple[str, float]]:
        return list(self._data.items())

    def __contains__(self, content_path: str) -> bool:
        return content_path in self._data

    def __len__(self) -> int:
        return len(self._data)

def _parse_record(raw, path: str) -> Dict[str, float]:
    """
    Accepts {"/a.mp4": {"lastPlaybackPosition": 12}} as well as the older
    list form [{"videoPath": "/a.mp4", "lastPlaybackPosition": 12}].
    Malformed entries are dropped.
    """
    pairs = []
    if isinstance(raw, dict):
        for k, v in raw.items():
            pos = v.get("lastPlaybackPosition") if isinstance(v, dict) else None
            pairs.append((k, pos))
    elif isinstance(raw, list):
        for item in raw:
            if isinstance(item, dict):
                pairs.append((item.get("videoPath"), item.get("lastPlaybackPosition")))
    else:
        log.error("progress record %s has unexpected type %s, starting empty", path, type(raw).__name__)
        return {}

    data: Dict[str, float] = {}
    for k, pos in pairs:
        if not isinstance(k, str) or isinstance(pos, bool) or not isinstance(pos, (int, float)):
            log.warning("dropping malformed progress entry %r in %s", k, path)
            continue
        data[k] = pos
    return data
