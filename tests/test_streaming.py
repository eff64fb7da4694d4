import asyncio
import os

import pytest

from vidstream.errors import ContentNotFound, RangeNotSatisfiable
from vidstream.media_scan import FileNode
from vidstream.streaming import FileRangeIterator, content_type_for, parse_range, stream_file

from conftest import write_bytes


@pytest.mark.parametrize("header, size, expected", [
    ("bytes=0-99", 1000, (0, 99)),
    ("bytes=500-", 1000, (500, 999)),
    ("bytes=999-999", 1000, (999, 999)),
    ("bytes=-100", 1000, (900, 999)),
    ("bytes=-2000", 1000, (0, 999)),
    ("bytes=0-9, 20-29", 1000, (0, 9)),
    ("BYTES=10-19", 1000, (10, 19)),
])
def test_parse_range(header, size, expected):
    assert parse_range(header, size) == expected


@pytest.mark.parametrize("header, size", [
    ("bytes=1000-", 1000),
    ("bytes=0-1000", 1000),
    ("bytes=5-2", 1000),
    ("bytes=-0", 1000),
    ("bytes=-", 1000),
    ("bytes=abc-", 1000),
    ("items=0-9", 1000),
    ("0-9", 1000),
    ("bytes=0-", 0),
])
def test_parse_range_rejects_unsatisfiable(header, size):
    with pytest.raises(RangeNotSatisfiable) as exc:
        parse_range(header, size)
    assert exc.value.file_size == size


def test_content_type_for():
    assert content_type_for("/x/film.mkv") == "video/x-matroska"
    assert content_type_for("/x/FILM.AVI") == "video/x-msvideo"
    assert content_type_for("/x/clip.m4v") == "video/mp4"
    assert content_type_for("/x/clip.ogv") == "video/mp4"


def test_iterator_yields_exact_span(tmp_path):
    path = write_bytes(tmp_path / "v.mp4", 1000)
    data = path.read_bytes()

    it = FileRangeIterator(open(path, "rb"), 100, 250, chunk_size=64)
    chunks = list(it)

    assert b"".join(chunks) == data[100:350]
    assert max(len(c) for c in chunks) <= 64
    assert it.closed


def test_iterator_releases_handle_when_closed_early(tmp_path):
    path = write_bytes(tmp_path / "v.mp4", 1000)

    it = FileRangeIterator(open(path, "rb"), 0, 1000, chunk_size=10)
    assert len(next(it)) == 10
    it.close()

    assert it.closed
    with pytest.raises(StopIteration):
        next(it)
    it.close()


def test_iterator_stops_if_file_shrinks(tmp_path):
    path = write_bytes(tmp_path / "v.mp4", 100)
    it = FileRangeIterator(open(path, "rb"), 50, 100, chunk_size=1000)
    assert len(b"".join(it)) == 50
    assert it.closed


def test_stream_file_restats_and_reports_missing_file(tmp_path):
    path = write_bytes(tmp_path / "v.mp4", 10)
    node = FileNode(file_name="v.mp4", display_name="v", system_path=str(path),
                    content_path="/m/v.mp4", size=999, modified=0.0)

    resp = stream_file(node, None)
    assert resp.status_code == 200
    assert resp.headers["content-length"] == "10"
    resp.file_iterator.close()

    os.remove(path)
    with pytest.raises(ContentNotFound):
        stream_file(node, "bytes=0-1")


def _file_node(path):
    return FileNode(file_name=os.path.basename(path), display_name="v", system_path=str(path),
                    content_path="/m/v.mp4", size=0, modified=0.0)


def _serve(resp, send):
    scope = {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.4"},
        "http_version": "1.1",
        "method": "GET",
        "path": "/m/v.mp4",
        "headers": [],
    }

    async def receive():
        await asyncio.sleep(3600)
        return {"type": "http.disconnect"}

    asyncio.run(resp(scope, receive, send))


def test_handle_released_when_client_disconnects_mid_body(tmp_path):
    path = write_bytes(tmp_path / "v.mp4", 100)
    resp = stream_file(_file_node(path), None, chunk_size=10)
    bodies = []

    async def send(message):
        if message["type"] == "http.response.body":
            bodies.append(message)
            if len(bodies) == 2:
                raise OSError(32, "Broken pipe")

    with pytest.raises(Exception):
        _serve(resp, send)

    assert len(bodies) == 2
    assert resp.file_iterator.closed


def test_handle_released_after_full_send(tmp_path):
    path = write_bytes(tmp_path / "v.mp4", 100)
    resp = stream_file(_file_node(path), "bytes=10-39", chunk_size=10)
    sent = []

    async def send(message):
        if message["type"] == "http.response.body":
            sent.append(message.get("body", b""))

    _serve(resp, send)

    assert b"".join(sent) == path.read_bytes()[10:40]
    assert resp.file_iterator.closed
