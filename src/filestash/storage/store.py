from __future__ import annotations

import asyncio
import inspect
import logging
import os
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from filestash.config import DEFAULT_DIRECTORY_MODE, BatchErrorPolicy, StoreConfig
from filestash.errors import BatchSaveError, NotEnabledError, UnsafeFilenameError

from .dirs import ensure_directory
from .handlers import HttpFileHandler, ReadHandler, SaveHandler

logger = logging.getLogger(__name__)

Contents = bytes | bytearray | memoryview | str


@dataclass(frozen=True, slots=True)
class ReadResult:
    name: str
    contents: bytes | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FileStore:
    """Saves and reads named files in a local directory or through handlers.

    The store is enabled when a directory is set, or when both a save and a
    read handler are registered. A registered handler takes over its
    operation kind completely, even if a directory is also configured.
    """

    def __init__(
        self,
        directory: str | os.PathLike[str] | None = None,
        *,
        save_handler: SaveHandler | None = None,
        read_handler: ReadHandler | None = None,
        directory_mode: int = DEFAULT_DIRECTORY_MODE,
        reject_unsafe_names: bool = True,
        batch_errors: BatchErrorPolicy | str = BatchErrorPolicy.FIRST,
    ) -> None:
        self._directory: str | None = None
        self._directory_created = False
        self.save_handler = save_handler
        self.read_handler = read_handler
        self.directory_mode = directory_mode
        self.reject_unsafe_names = reject_unsafe_names
        self.batch_errors = BatchErrorPolicy(batch_errors)
        self.set_directory(directory)

    @classmethod
    def from_config(
        cls,
        config: StoreConfig,
        *,
        session: requests.Session | None = None,
    ) -> FileStore:
        store = cls(
            config.directory,
            directory_mode=config.directory_mode,
            reject_unsafe_names=config.reject_unsafe_names,
            batch_errors=config.batch_errors,
        )
        if config.remote is not None:
            handler = HttpFileHandler.from_config(config.remote, session=session)
            store.set_save_handler(handler.save)
            store.set_read_handler(handler.read)
        return store

    @property
    def directory(self) -> str | None:
        return self._directory

    def set_directory(self, path: str | os.PathLike[str] | None) -> None:
        raw = os.fspath(path) if path is not None else ""
        self._directory = raw if raw.strip() else None
        self._directory_created = False

    def set_save_handler(self, handler: SaveHandler | None) -> None:
        self.save_handler = handler

    def set_read_handler(self, handler: ReadHandler | None) -> None:
        self.read_handler = handler

    def is_enabled(self) -> bool:
        return self._directory is not None or (
            self.save_handler is not None and self.read_handler is not None
        )

    async def save_file(self, name: str, contents: Contents) -> None:
        if not self.is_enabled():
            raise NotEnabledError()
        self._check_name(name)
        payload = _to_bytes(contents)

        if self.save_handler is not None:
            logger.debug("file_store save name=%s backend=handler", name)
            await _invoke(self.save_handler, name, payload)
            return

        directory = self._directory
        if directory is None:
            raise NotEnabledError()
        logger.debug("file_store save name=%s backend=local", name)
        if not self._directory_created:
            await asyncio.to_thread(ensure_directory, directory, self.directory_mode)
        await asyncio.to_thread(Path(directory, name).write_bytes, payload)
        if self._directory == directory:
            self._directory_created = True

    write_file = save_file

    async def save_files(self, files: Mapping[str, Contents]) -> None:
        if not self.is_enabled():
            raise NotEnabledError()
        if not files:
            return

        names = list(files)
        tasks = [asyncio.create_task(self.save_file(name, files[name])) for name in names]

        if self.batch_errors is BatchErrorPolicy.ALL:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
            errors = {
                name: outcome
                for name, outcome in zip(names, outcomes)
                if isinstance(outcome, Exception)
            }
            if errors:
                raise BatchSaveError(errors)
            return

        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in pending:
            task.add_done_callback(_discard_result)
        for task in tasks:
            if task not in done:
                continue
            error = task.exception()
            if error is not None:
                raise error

    write_files = save_files

    async def read_file(self, name: str) -> bytes:
        if not self.is_enabled():
            raise NotEnabledError()
        self._check_name(name)

        if self.read_handler is not None:
            logger.debug("file_store read name=%s backend=handler", name)
            return _to_bytes(await _invoke(self.read_handler, name))

        directory = self._directory
        if directory is None:
            raise NotEnabledError()
        logger.debug("file_store read name=%s backend=local", name)
        return await asyncio.to_thread(Path(directory, name).read_bytes)

    async def read_files(self, names: Iterable[str]) -> list[ReadResult]:
        return list(await asyncio.gather(*(self._read_result(name) for name in names)))

    async def _read_result(self, name: str) -> ReadResult:
        try:
            contents = await self.read_file(name)
        except Exception as exc:
            return ReadResult(name=name, error=exc)
        return ReadResult(name=name, contents=contents)

    def _check_name(self, name: str) -> None:
        if not isinstance(name, str) or not name:
            raise UnsafeFilenameError(str(name), "name must be a non-empty string")
        if "\x00" in name:
            raise UnsafeFilenameError(name, "null bytes are not allowed")
        if not self.reject_unsafe_names:
            return

        normalized = name.replace("\\", "/")
        if normalized.startswith("/") or os.path.isabs(name):
            raise UnsafeFilenameError(name, "absolute paths are not allowed")
        if any(segment == ".." for segment in normalized.split("/")):
            raise UnsafeFilenameError(name, "parent directory segments are not allowed")


async def _invoke(handler: Callable[..., Any], *args: Any) -> Any:
    if inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    ):
        return await handler(*args)

    result = await asyncio.to_thread(handler, *args)
    if inspect.isawaitable(result):
        return await result
    return result


def _to_bytes(contents: Any) -> bytes:
    if isinstance(contents, str):
        return contents.encode("utf-8")
    if isinstance(contents, (bytes, bytearray, memoryview)):
        return bytes(contents)
    raise TypeError(f"contents must be bytes or str, got {type(contents).__name__}")


def _discard_result(task: asyncio.Task[None]) -> None:
    if not task.cancelled():
        task.exception()
