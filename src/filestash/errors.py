from __future__ import annotations


class FileStashError(Exception):
    """Base class for file store errors."""


class NotEnabledError(FileStashError):
    def __init__(self, message: str = "File storage system is not enabled") -> None:
        super().__init__(message)


class UnsafeFilenameError(FileStashError, ValueError):
    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Unsafe file name {name!r}: {reason}")
        self.name = name
        self.reason = reason


class BatchSaveError(FileStashError):
    """Raised by save_files under the collect-all policy."""

    def __init__(self, errors: dict[str, Exception]) -> None:
        names = ", ".join(sorted(errors))
        super().__init__(f"{len(errors)} file(s) failed to save: {names}")
        self.errors = dict(errors)
