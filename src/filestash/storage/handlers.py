from __future__ import annotations

import logging
import os
from collections.abc import Awaitable
from typing import Protocol
from urllib.parse import quote

import requests

from filestash.config import RemoteConfig

logger = logging.getLogger(__name__)


class SaveHandler(Protocol):
    def __call__(self, name: str, contents: bytes) -> Awaitable[None] | None:
        """Persist ``contents`` under ``name``, raising on failure."""


class ReadHandler(Protocol):
    def __call__(self, name: str) -> Awaitable[bytes] | bytes:
        """Return the contents stored under ``name``, raising on failure."""


class HttpFileHandler:
    """Stores files on an HTTP endpoint that accepts PUT and serves GET.

    Pass ``handler.save`` and ``handler.read`` to a FileStore.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        token: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("base_url is empty.")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0.")

        self.base_url = base_url.strip().rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_config(
        cls,
        config: RemoteConfig,
        *,
        session: requests.Session | None = None,
    ) -> HttpFileHandler:
        token: str | None = None
        if config.token_env is not None:
            token = os.getenv(config.token_env, "").strip()
            if not token:
                raise ValueError(f"Environment variable {config.token_env} is not set.")
        return cls(
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
            token=token,
            session=session,
        )

    def url_for(self, name: str) -> str:
        path = name.replace("\\", "/")
        return f"{self.base_url}/{quote(path, safe='/')}"

    def save(self, name: str, contents: bytes) -> None:
        url = self.url_for(name)
        response = self.session.put(
            url,
            data=contents,
            headers={"Content-Type": "application/octet-stream"},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        logger.info("http_handler put url=%s bytes=%s", url, len(contents))

    def read(self, name: str) -> bytes:
        url = self.url_for(name)
        response = self.session.get(url, timeout=self.timeout_seconds)
        response.raise_for_status()
        logger.info("http_handler get url=%s bytes=%s", url, len(response.content))
        return response.content
