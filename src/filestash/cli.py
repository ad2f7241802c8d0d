from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer

from filestash.config import StoreConfig, load_config
from filestash.errors import FileStashError
from filestash.storage import FileStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

T = TypeVar("T")

app = typer.Typer(help="filestash CLI")
debug_app = typer.Typer(help="Debug commands")
app.add_typer(debug_app, name="debug")

DirectoryOption = typer.Option(
    None,
    "--dir",
    help="Local storage directory (overrides the config file).",
)
ConfigOption = typer.Option(
    None,
    "--config",
    help="Path to a JSON or YAML store config.",
    exists=True,
    dir_okay=False,
    readable=True,
)


@app.command()
def status(
    directory: Path | None = DirectoryOption,
    config_path: Path | None = ConfigOption,
) -> None:
    """Show whether the store can save and read files."""
    config = _resolve_config(directory, config_path)
    store = _build_store(config)
    remote = config.remote.base_url if config.remote else "-"
    typer.echo(
        f"enabled={str(store.is_enabled()).lower()} "
        f"directory={store.directory or '-'} remote={remote}"
    )


@app.command()
def save(
    name: str = typer.Argument(..., help="Name to store the file under."),
    source: Path | None = typer.Option(
        None,
        "--from",
        help="Local file whose bytes are saved.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    text: str | None = typer.Option(None, "--text", help="Text saved as UTF-8."),
    directory: Path | None = DirectoryOption,
    config_path: Path | None = ConfigOption,
) -> None:
    """Save a single file."""
    if (source is None) == (text is None):
        typer.echo("exactly one of --from or --text is required", err=True)
        raise typer.Exit(code=2)

    contents = source.read_bytes() if source is not None else (text or "").encode("utf-8")
    store = _build_store(_resolve_config(directory, config_path))
    _run_or_exit(store.save_file(name, contents))
    typer.echo(f"saved {name} bytes={len(contents)}")


@app.command("save-many")
def save_many(
    sources: list[Path] = typer.Argument(
        ...,
        help="Local files, saved under their base names.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    directory: Path | None = DirectoryOption,
    config_path: Path | None = ConfigOption,
) -> None:
    """Save several files concurrently."""
    files = {source.name: source.read_bytes() for source in sources}
    store = _build_store(_resolve_config(directory, config_path))
    _run_or_exit(store.save_files(files))
    typer.echo(f"saved {len(files)} files")


@app.command()
def read(
    name: str = typer.Argument(..., help="Name of the stored file."),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write contents here instead of stdout.",
        dir_okay=False,
    ),
    directory: Path | None = DirectoryOption,
    config_path: Path | None = ConfigOption,
) -> None:
    """Read a single file."""
    store = _build_store(_resolve_config(directory, config_path))
    contents = _run_or_exit(store.read_file(name))
    if output is not None:
        output.write_bytes(contents)
        typer.echo(f"wrote {output} bytes={len(contents)}")
        return
    typer.echo(contents.decode("utf-8", errors="replace"), nl=False)


@app.command("read-many")
def read_many(
    names: list[str] = typer.Argument(..., help="Names of the stored files."),
    directory: Path | None = DirectoryOption,
    config_path: Path | None = ConfigOption,
) -> None:
    """Read several files and report each result in input order."""
    store = _build_store(_resolve_config(directory, config_path))
    results = asyncio.run(store.read_files(names))

    failed = 0
    for result in results:
        if result.ok:
            typer.echo(f"{result.name} bytes={len(result.contents or b'')}")
        else:
            failed += 1
            typer.echo(f"{result.name} error={result.error}")

    if failed:
        raise typer.Exit(code=1)


@debug_app.command("storage")
def debug_storage(
    directory: Path = typer.Option(
        Path("data/filestash"),
        "--dir",
        help="Local storage directory.",
    ),
) -> None:
    """Run storage smoke test."""
    store = FileStore(directory)
    files = {"debug-a.txt": "smoke_ok", "debug-b.bin": b"\x00\x01smoke"}

    async def _round_trip() -> bool:
        await store.save_files(files)
        results = await store.read_files(list(files))
        return all(
            result.ok and result.contents == _expected_bytes(files[result.name])
            for result in results
        )

    try:
        ok = asyncio.run(_round_trip())
    except (FileStashError, OSError) as exc:
        logging.exception("storage smoke test raised dir=%s", directory)
        typer.echo(f"storage smoke test failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if not ok:
        typer.echo("storage smoke test failed", err=True)
        raise typer.Exit(code=1)

    typer.echo("storage ok")


def _resolve_config(directory: Path | None, config_path: Path | None) -> StoreConfig:
    try:
        config = load_config(config_path) if config_path is not None else StoreConfig()
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    if directory is not None:
        config = config.model_copy(update={"directory": str(directory)})
    return config


def _build_store(config: StoreConfig) -> FileStore:
    try:
        return FileStore.from_config(config)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


def _run_or_exit(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except FileStashError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        typer.echo(f"io error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _expected_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value
