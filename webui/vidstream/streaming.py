# streaming.py: serve file bytes with single-range (HTTP Range) support
import os, re, stat, logging
from typing import Optional, Tuple

from fastapi.responses import StreamingResponse

from .config import DEFAULT_CHUNK_SIZE
from .errors import ContentNotFound, RangeNotSatisfiable
from .media_scan import FileNode

log = logging.getLogger(__name__)

MIME_TYPES = {
    ".mp4": "video/mp4",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".flv": "video/x-flv",
    ".webm": "video/webm",
    ".m4v": "video/mp4",
}
DEFAULT_MIME = "video/mp4"

_range_re = re.compile(r"(\d*)-(\d*)")

def content_type_for(path: str) -> str:
    return MIME_TYPES.get(os.path.splitext(path)[1].lower(), DEFAULT_MIME)

def parse_range(range_header: str, file_size: int) -> Tuple[int, int]:
    """
    Parse a Range header into an inclusive (start, end) pair.

    Only the first range of a multi-range header is used. Anything that
    does not fit inside the file raises RangeNotSatisfiable; nothing is
    clamped.
    """
    unit, sep, ranges = range_header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        raise RangeNotSatisfiable(file_size, range_header)
    m = _range_re.fullmatch(ranges.split(",", 1)[0].strip())
    if not m:
        raise RangeNotSatisfiable(file_size, range_header)
    start_s, end_s = m.groups()
    if start_s == "" and end_s == "":
        raise RangeNotSatisfiable(file_size, range_header)

    if start_s == "":  # bytes=-N
        length = int(end_s)
        if length <= 0 or file_size == 0:
            raise RangeNotSatisfiable(file_size, range_header)
        start = max(0, file_size - length)
        end = file_size - 1
    else:
        start = int(start_s)
        end = int(end_s) if end_s else file_size - 1

    if not (0 <= start <= end < file_size):
        raise RangeNotSatisfiable(file_size, range_header)
    return start, end

class FileRangeIterator:
    """
    Forward-only iterator over `length` bytes of an open file, starting at
    `start`. Owns the handle: it is closed once the span is exhausted or
    close() is called, whichever comes first.
    """

    def __init__(self, f, start: int, length: int, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._f = f
        self._remaining = length
        self._chunk_size = chunk_size
        try:
            f.seek(start)
        except Exception:
            f.close()
            raise

    @property
    def closed(self) -> bool:
        return self._f.closed

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        if self._remaining <= 0 or self._f.closed:
            self.close()
            raise StopIteration
        data = self._f.read(min(self._chunk_size, self._remaining))
        if not data:
            self.close()
            raise StopIteration
        self._remaining -= len(data)
        return data

    def close(self) -> None:
        if self._f.closed:
            return
        if self._remaining > 0:
            log.debug("stream of %s closed with %d bytes unsent", getattr(self._f, "name", "?"), self._remaining)
        self._f.close()

class FileStreamingResponse(StreamingResponse):
    """StreamingResponse that closes its file iterator however sending ends."""

    def __init__(self, body: FileRangeIterator, **kwargs):
        super().__init__(body, **kwargs)
        self.file_iterator = body

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.file_iterator.close()

def stream_file(node: FileNode, range_header: Optional[str], chunk_size: int = DEFAULT_CHUNK_SIZE) -> StreamingResponse:
    """
    Build the response for a file node. The file is re-stat'ed here, so the
    size in the tree is never trusted for byte offsets.
    """
    try:
        st = os.stat(node.system_path)
    except OSError:
        raise ContentNotFound(node.content_path)
    if not stat.S_ISREG(st.st_mode):
        raise ContentNotFound(node.content_path)

    file_size = st.st_size
    mime = content_type_for(node.system_path)
    headers = {"Accept-Ranges": "bytes"}

    if range_header:
        start, end = parse_range(range_header, file_size)
        length = end - start + 1
        status_code = 206
        headers["Content-Range"] = f"bytes {start}-{end}/{file_size}"
    else:
        start, length, status_code = 0, file_size, 200
    headers["Content-Length"] = str(length)

    try:
        f = open(node.system_path, "rb")
    except FileNotFoundError:
        raise ContentNotFound(node.content_path)
    body = FileRangeIterator(f, start, length, chunk_size)
    return FileStreamingResponse(
        body,
        status_code=status_code,
        headers=headers,
        media_type=mime,
    )
