# errors.py


class VidstreamError(Exception):
    pass


class ConfigError(VidstreamError):
    pass


class ContentNotFound(VidstreamError):
    """Content path resolves to no node, or the backing file is gone."""


class InvalidContentPath(VidstreamError):
    """Content path resolves to a node of the wrong kind for the operation."""


class ProgressStoreError(VidstreamError):
    """Progress record could not be written."""


class RangeNotSatisfiable(VidstreamError):
    def __init__(self, file_size: int, header: str = ""):
        super().__init__(f"range not satisfiable: {header!r} (size={file_size})")
        self.file_size = file_size
        self.header = header
