# media_scan.py: build the in-memory media tree from the configured mounts
import os, errno, logging
from dataclasses import dataclass
from typing import ClassVar, Iterable, List, Optional, Tuple, Union

from .models import TopLevelMount

log = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm", ".m4v")

@dataclass(frozen=True)
class DirectoryNode:
    file_name: str
    display_name: str
    system_path: str
    content_path: str
    children: Tuple["TreeNode", ...] = ()
    video_count: int = 0
    kind: ClassVar[str] = "directory"

@dataclass(frozen=True)
class FileNode:
    file_name: str
    display_name: str
    system_path: str
    content_path: str
    size: int
    modified: float
    kind: ClassVar[str] = "file"

TreeNode = Union[DirectoryNode, FileNode]

def is_video_file(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in VIDEO_EXTENSIONS

def join_content_path(base: str, name: str) -> str:
    return base.rstrip("/") + "/" + name

def path_segments(content_path: str) -> List[str]:
    return [p for p in content_path.split("/") if p]

def normalize_content_path(raw: str) -> str:
    """'computer/Sub/' -> '/computer/Sub'"""
    return "/" + "/".join(path_segments(raw or ""))

def _sort_key(node: TreeNode):
    # directories first, then case-sensitive by raw name
    return (0 if isinstance(node, DirectoryNode) else 1, node.file_name)

def build_directory_tree(
    dir_path: str,
    content_path: str,
    display_name: Optional[str] = None,
    max_depth: int = 10,
    depth: int = 0,
) -> Optional[DirectoryNode]:
    """
    Recursively index one directory.

    Returns None when the depth limit is reached or the directory cannot be
    listed; the caller then leaves the branch out entirely. Failures on single
    entries are logged and skipped without affecting their siblings.
    """
    if depth >= max_depth:
        return None

    try:
        with os.scandir(dir_path) as it:
            entries = list(it)
    except OSError as e:
        log.warning("cannot list directory %s: %s", dir_path, e)
        return None

    subdirs: List[DirectoryNode] = []
    files: List[FileNode] = []
    for entry in entries:
        try:
            entry.name.encode("utf-8")
        except UnicodeEncodeError:
            # undecodable bytes in the name: no addressable content path
            log.warning("skipping %r: name is not valid UTF-8", entry.path)
            continue
        child_content_path = join_content_path(content_path, entry.name)
        try:
            if entry.is_dir():
                sub = build_directory_tree(entry.path, child_content_path, None, max_depth, depth + 1)
                if sub is not None:
                    subdirs.append(sub)
            elif entry.is_file() and is_video_file(entry.name):
                st = entry.stat()
                files.append(FileNode(
                    file_name=entry.name,
                    display_name=os.path.splitext(entry.name)[0],
                    system_path=entry.path,
                    content_path=child_content_path,
                    size=st.st_size,
                    modified=st.st_mtime,
                ))
        except OSError as e:
            log.warning("skipping %s: %s", entry.path, e)

    children: List[TreeNode] = [*subdirs, *files]
    children.sort(key=_sort_key)
    file_name = os.path.basename(os.path.normpath(dir_path)) or dir_path
    return DirectoryNode(
        file_name=file_name,
        display_name=display_name if display_name is not None else file_name,
        system_path=dir_path,
        content_path=content_path,
        children=tuple(children),
        video_count=len(files) + sum(d.video_count for d in subdirs),
    )

def build_root_tree(mounts: Iterable[TopLevelMount], max_depth: int = 10) -> DirectoryNode:
    """One root child per mount that could be indexed, in configuration order."""
    mount_trees: List[DirectoryNode] = []
    for m in mounts:
        tree = build_directory_tree(m.system_path, "/" + m.mount_point, m.display_name, max_depth)
        if tree is None:
            log.warning("mount %s (%s) produced no tree", m.display_name, m.system_path)
            continue
        log.info("mount %s (%s): %d videos", m.display_name, m.system_path, tree.video_count)
        mount_trees.append(tree)
    return DirectoryNode(
        file_name="Root",
        display_name="Root",
        system_path="/",
        content_path="/",
        children=tuple(mount_trees),
        video_count=sum(t.video_count for t in mount_trees),
    )

def find_item_by_path(tree: TreeNode, path: str) -> Optional[TreeNode]:
    """
    Descend from `tree` towards `path`. Children are matched segment by
    segment, so '/a/b' never routes into a sibling '/a/bc'.
    """
    target = path_segments(path)
    node = tree
    while True:
        node_parts = path_segments(node.content_path)
        if node_parts == target:
            return node
        if not isinstance(node, DirectoryNode):
            return None
        node = next(
            (c for c in node.children
             if target[:len(path_segments(c.content_path))] == path_segments(c.content_path)),
            None,
        )
        if node is None:
            return None

def check_mount_status(system_path: str) -> Tuple[str, Optional[str]]:
    if not os.path.exists(system_path):
        return "not_found", "Directory does not exist"
    if not os.path.isdir(system_path):
        return "not_directory", "Path is not a directory"
    try:
        with os.scandir(system_path) as it:
            next(it, None)
    except PermissionError:
        return "no_permission", "Permission denied"
    except NotADirectoryError:
        return "not_directory", "Path is not a directory"
    except FileNotFoundError:
        return "not_found", "Directory not found"
    except OSError as e:
        if e.errno == errno.EIO:
            return "io_error", "I/O error (possibly unmounted)"
        return "error", str(e)
    return "accessible", None
