"""Pluggable file storage: local directory or external handlers."""

from .dirs import ensure_directory
from .handlers import HttpFileHandler, ReadHandler, SaveHandler
from .store import FileStore, ReadResult

__all__ = [
    "FileStore",
    "HttpFileHandler",
    "ReadHandler",
    "ReadResult",
    "SaveHandler",
    "ensure_directory",
]
