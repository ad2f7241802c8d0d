"""filestash package."""

from .config import BatchErrorPolicy, RemoteConfig, StoreConfig, load_config
from .errors import BatchSaveError, FileStashError, NotEnabledError, UnsafeFilenameError
from .storage import FileStore, ReadResult, ensure_directory

__all__ = [
    "BatchErrorPolicy",
    "BatchSaveError",
    "FileStashError",
    "FileStore",
    "NotEnabledError",
    "ReadResult",
    "RemoteConfig",
    "StoreConfig",
    "UnsafeFilenameError",
    "ensure_directory",
    "load_config",
]
