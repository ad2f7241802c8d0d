from __future__ import annotations

import logging
import os
from pathlib import Path

from filestash.config import DEFAULT_DIRECTORY_MODE

logger = logging.getLogger(__name__)


def ensure_directory(
    path: str | os.PathLike[str], mode: int = DEFAULT_DIRECTORY_MODE
) -> list[Path]:
    """Create every missing directory along ``path``.

    Both ``/`` and ``\\`` are treated as separators. A leading separator keeps
    the path absolute. Returns the directories that were created, outermost
    first; an already existing tree yields an empty list.
    """
    normalized = os.fspath(path).replace("\\", "/")
    if not normalized:
        return []

    current: Path | None = Path("/") if normalized.startswith("/") else None
    created: list[Path] = []
    for segment in normalized.split("/"):
        if not segment:
            continue
        current = Path(segment) if current is None else current / segment
        if current.is_dir():
            continue

        try:
            current.mkdir(mode=mode)
        except FileExistsError:
            # another writer got there first
            if not current.is_dir():
                raise NotADirectoryError(f"Not a directory: {current}") from None
            continue

        created.append(current)
        logger.info("file_store mkdir path=%s mode=%o", current, mode)

    return created
