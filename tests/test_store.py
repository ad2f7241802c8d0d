from __future__ import annotations

import asyncio

import pytest

import filestash.storage.store as store_module
from filestash.errors import NotEnabledError, UnsafeFilenameError
from filestash.storage import FileStore


class _RecordingHandlers:
    def __init__(self) -> None:
        self.saved: dict[str, bytes] = {}
        self.reads: list[str] = []

    async def save(self, name: str, contents: bytes) -> None:
        self.saved[name] = contents

    async def read(self, name: str) -> bytes:
        self.reads.append(name)
        return self.saved.get(name, b"remote:" + name.encode("utf-8"))


def test_store_without_directory_or_handlers_is_disabled() -> None:
    store = FileStore(None)

    assert store.is_enabled() is False
    with pytest.raises(NotEnabledError, match="not enabled"):
        asyncio.run(store.save_file("a.txt", b"data"))
    with pytest.raises(NotEnabledError):
        asyncio.run(store.read_file("a.txt"))
    with pytest.raises(NotEnabledError):
        asyncio.run(store.save_files({}))


def test_disabled_store_fails_before_touching_handlers() -> None:
    handlers = _RecordingHandlers()
    store = FileStore(None, save_handler=handlers.save)

    assert store.is_enabled() is False
    with pytest.raises(NotEnabledError):
        asyncio.run(store.save_file("a.txt", b"data"))
    assert handlers.saved == {}


def test_directory_alone_enables_store(tmp_path) -> None:
    store = FileStore(tmp_path / "files")
    assert store.is_enabled() is True

    store.set_read_handler(_RecordingHandlers().read)
    assert store.is_enabled() is True


def test_local_round_trip_is_byte_exact(tmp_path) -> None:
    store = FileStore(tmp_path / "nested" / "files")
    payload = bytes(range(256))

    asyncio.run(store.save_file("blob.bin", payload))

    assert asyncio.run(store.read_file("blob.bin")) == payload
    assert (tmp_path / "nested" / "files" / "blob.bin").read_bytes() == payload


def test_string_contents_are_utf8_encoded(tmp_path) -> None:
    store = FileStore(tmp_path)

    asyncio.run(store.write_file("note.txt", "héllo 파일"))

    assert (tmp_path / "note.txt").read_bytes() == "héllo 파일".encode("utf-8")


def test_save_truncates_existing_file(tmp_path) -> None:
    store = FileStore(tmp_path)

    asyncio.run(store.save_file("note.txt", b"a much longer original body"))
    asyncio.run(store.save_file("note.txt", b"short"))

    assert asyncio.run(store.read_file("note.txt")) == b"short"


def test_save_rejects_non_bytes_contents(tmp_path) -> None:
    store = FileStore(tmp_path)

    with pytest.raises(TypeError):
        asyncio.run(store.save_file("n.txt", 123))  # type: ignore[arg-type]


def test_read_missing_file_raises_file_not_found(tmp_path) -> None:
    store = FileStore(tmp_path)

    with pytest.raises(FileNotFoundError):
        asyncio.run(store.read_file("missing.txt"))


def test_directory_creation_runs_once_per_directory(monkeypatch, tmp_path) -> None:
    calls: list[str] = []
    original = store_module.ensure_directory

    def _tracking_ensure(path, mode):
        calls.append(str(path))
        return original(path, mode)

    monkeypatch.setattr(store_module, "ensure_directory", _tracking_ensure)
    first = tmp_path / "first"
    second = tmp_path / "second" / "deeper"
    store = FileStore(first)

    asyncio.run(store.save_file("a.txt", b"1"))
    asyncio.run(store.save_file("b.txt", b"2"))
    assert calls == [str(first)]

    store.set_directory(second)
    asyncio.run(store.save_file("c.txt", b"3"))

    assert calls == [str(first), str(second)]
    assert (second / "c.txt").read_bytes() == b"3"
    assert not (first / "c.txt").exists()


def test_set_directory_to_none_disables_local_path(tmp_path) -> None:
    store = FileStore(tmp_path)
    store.set_directory(None)

    assert store.directory is None
    assert store.is_enabled() is False


def test_both_handlers_enable_store_and_bypass_disk(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    handlers = _RecordingHandlers()
    store = FileStore(save_handler=handlers.save, read_handler=handlers.read)

    assert store.is_enabled() is True
    asyncio.run(store.save_file("remote.txt", "payload"))

    assert handlers.saved == {"remote.txt": b"payload"}
    assert asyncio.run(store.read_file("remote.txt")) == b"payload"
    assert list(tmp_path.iterdir()) == []


def test_sync_handlers_are_supported() -> None:
    saved: dict[str, bytes] = {}

    def save(name: str, contents: bytes) -> None:
        saved[name] = contents

    def read(name: str) -> str:
        return saved[name].decode("utf-8").upper()

    store = FileStore(save_handler=save, read_handler=read)
    asyncio.run(store.save_file("x", b"abc"))

    assert asyncio.run(store.read_file("x")) == b"ABC"


def test_handler_error_propagates_verbatim() -> None:
    class QuotaExceeded(Exception):
        pass

    error = QuotaExceeded("bucket full")

    async def save(name: str, contents: bytes) -> None:
        raise error

    store = FileStore(save_handler=save, read_handler=_RecordingHandlers().read)

    with pytest.raises(QuotaExceeded) as excinfo:
        asyncio.run(store.save_file("a", b"x"))
    assert excinfo.value is error


def test_partial_handler_routes_only_its_operation(tmp_path) -> None:
    handlers = _RecordingHandlers()
    store = FileStore(tmp_path, save_handler=handlers.save)
    (tmp_path / "local.txt").write_bytes(b"from disk")

    asyncio.run(store.save_file("remote.txt", b"to handler"))

    assert handlers.saved == {"remote.txt": b"to handler"}
    assert not (tmp_path / "remote.txt").exists()
    assert asyncio.run(store.read_file("local.txt")) == b"from disk"


@pytest.mark.parametrize(
    "name",
    ["", "../escape.txt", "a/../../b", "/etc/passwd", "..\\win.txt", "bad\x00name"],
)
def test_unsafe_names_are_rejected(tmp_path, name) -> None:
    store = FileStore(tmp_path)

    with pytest.raises(UnsafeFilenameError):
        asyncio.run(store.save_file(name, b"x"))
    with pytest.raises(UnsafeFilenameError):
        asyncio.run(store.read_file(name))


def test_unsafe_name_check_can_be_disabled(tmp_path) -> None:
    store = FileStore(tmp_path / "inner", reject_unsafe_names=False)

    asyncio.run(store.save_file("../outside.txt", b"x"))

    assert (tmp_path / "outside.txt").read_bytes() == b"x"


def test_nested_name_requires_existing_subdirectory(tmp_path) -> None:
    store = FileStore(tmp_path)

    with pytest.raises(FileNotFoundError):
        asyncio.run(store.save_file("sub/file.txt", b"x"))

    (tmp_path / "sub").mkdir()
    asyncio.run(store.save_file("sub/file.txt", b"x"))
    assert (tmp_path / "sub" / "file.txt").read_bytes() == b"x"


def test_plain_handler_returning_awaitable_is_awaited() -> None:
    saved: dict[str, bytes] = {}

    async def _store(name: str, contents: bytes) -> None:
        saved[name] = contents

    async def _fetch(name: str) -> bytes:
        return saved[name]

    def save(name: str, contents: bytes):
        return _store(name, contents)

    def read(name: str):
        return _fetch(name)

    store = FileStore(save_handler=save, read_handler=read)
    asyncio.run(store.save_file("deferred.txt", b"later"))

    assert saved == {"deferred.txt": b"later"}
    assert asyncio.run(store.read_file("deferred.txt")) == b"later"


def test_directory_reassigned_mid_write_is_walked_on_next_save(monkeypatch, tmp_path) -> None:
    calls: list[str] = []
    original = store_module.ensure_directory
    first = tmp_path / "first"
    second = tmp_path / "second" / "deeper"
    store = FileStore(first)

    def _reassigning_ensure(path, mode):
        calls.append(str(path))
        created = original(path, mode)
        if str(path) == str(first):
            store.set_directory(second)
        return created

    monkeypatch.setattr(store_module, "ensure_directory", _reassigning_ensure)

    asyncio.run(store.save_file("a.txt", b"1"))
    assert (first / "a.txt").read_bytes() == b"1"
    assert store.directory == str(second)

    asyncio.run(store.save_file("b.txt", b"2"))

    assert calls == [str(first), str(second)]
    assert (second / "b.txt").read_bytes() == b"2"


def test_set_directory_keeps_path_verbatim(tmp_path) -> None:
    store = FileStore(tmp_path / " spaced ")

    asyncio.run(store.save_file("a.txt", b"x"))

    assert store.directory == str(tmp_path / " spaced ")
    assert (tmp_path / " spaced " / "a.txt").read_bytes() == b"x"
