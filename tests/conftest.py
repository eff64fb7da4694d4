import pytest
from fastapi.testclient import TestClient

from vidstream.config import Settings
from vidstream.main import create_app
from vidstream.models import TopLevelMount


def write_bytes(path, size):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(bytes(i % 251 for i in range(size)))
    return path


@pytest.fixture
def movies(tmp_path):
    """movies/a.mp4 (10 bytes), movies/Sub/b.mkv (20 bytes), movies/notes.txt"""
    root = tmp_path / "movies"
    write_bytes(root / "a.mp4", 10)
    write_bytes(root / "Sub" / "b.mkv", 20)
    (root / "notes.txt").write_text("not a video", encoding="utf-8")
    return root


@pytest.fixture
def make_client(tmp_path):
    def _make(*mounts, max_depth=10, chunk_size=64):
        settings = Settings(
            mounts=[
                TopLevelMount(display_name=name, system_path=str(path), mount_point=point)
                for name, path, point in mounts
            ],
            max_depth=max_depth,
            progress_file=str(tmp_path / "state" / "progress.json"),
            chunk_size=chunk_size,
        )
        return TestClient(create_app(settings))
    return _make
