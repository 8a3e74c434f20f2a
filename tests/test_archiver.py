import gc
import sys
import zipfile

import pytest

from packager.core import archiver as archiver_module
from packager.core.archiver import StreamArchiver, create_archive
from packager.errors import ConfigurationError, PackagingIOError

from .conftest import failing_on


@pytest.fixture
def source_dir(tmp_path):
    source = tmp_path / "package"
    (source / "b").mkdir(parents=True)
    (source / "a.json").write_text('{"key": "value"}\n' * 30, encoding="utf-8")
    (source / "b" / "c.json").write_text('{"resource": "storage"}\n' * 65, encoding="utf-8")
    return source


@pytest.mark.asyncio
async def test_archive_contains_every_file_under_relative_path(source_dir, tmp_path):
    destination = tmp_path / "out" / "package.zip"
    entries = []

    stats = await StreamArchiver(64, on_entry=entries.append).create_archive(source_dir, destination, 6)

    assert destination.exists()
    assert entries == ["a.json", "b/c.json"]
    assert stats.entry_count == 2
    assert stats.input_size_bytes == 510 + 1560
    assert stats.archive_size_bytes == destination.stat().st_size
    assert stats.archive_size_bytes < stats.input_size_bytes

    with zipfile.ZipFile(destination) as archive:
        assert archive.namelist() == ["a.json", "b/c.json"]
        for name in archive.namelist():
            assert archive.read(name) == (source_dir / name).read_bytes()
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in archive.infolist())


@pytest.mark.asyncio
async def test_chunk_count_covers_every_file(source_dir, tmp_path):
    stats = await create_archive(source_dir, tmp_path / "package.zip", chunk_size_bytes=64)

    assert stats.chunk_count == 8 + 25


@pytest.mark.asyncio
async def test_empty_files_become_empty_entries(tmp_path):
    source = tmp_path / "package"
    source.mkdir()
    (source / "empty.json").write_bytes(b"")
    destination = tmp_path / "package.zip"

    stats = await create_archive(source, destination)

    assert stats.entry_count == 1
    with zipfile.ZipFile(destination) as archive:
        assert archive.read("empty.json") == b""


@pytest.mark.asyncio
async def test_destination_inside_source_is_not_archived(source_dir):
    destination = source_dir / "package.zip"

    stats = await create_archive(source_dir, destination)

    assert stats.entry_count == 2
    with zipfile.ZipFile(destination) as archive:
        assert "package.zip" not in archive.namelist()


@pytest.mark.asyncio
@pytest.mark.parametrize("level", [-1, 10, 6.0, True])
async def test_invalid_compression_level_is_rejected(source_dir, tmp_path, level):
    destination = tmp_path / "package.zip"

    with pytest.raises(ConfigurationError):
        await create_archive(source_dir, destination, compression_level=level)

    assert not destination.exists()


@pytest.mark.asyncio
async def test_unwritable_destination_raises_io_error(source_dir, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    destination = blocker / "package.zip"

    with pytest.raises(PackagingIOError) as exc_info:
        await create_archive(source_dir, destination)

    assert exc_info.value.path == str(destination)


@pytest.mark.asyncio
async def test_missing_source_raises_io_error(tmp_path):
    with pytest.raises(PackagingIOError):
        await create_archive(tmp_path / "missing", tmp_path / "package.zip")


@pytest.mark.asyncio
async def test_read_failure_mid_walk_keeps_partial_archive_and_closes_it(source_dir, tmp_path, monkeypatch):
    monkeypatch.setattr(archiver_module, "iter_chunks", failing_on("c.json"))
    unraisable = []
    monkeypatch.setattr(sys, "unraisablehook", lambda info: unraisable.append(info.exc_value))
    destination = tmp_path / "package.zip"

    with pytest.raises(PackagingIOError) as exc_info:
        await create_archive(source_dir, destination)
    gc.collect()

    assert exc_info.value.path.endswith("c.json")
    assert unraisable == []
    assert destination.exists()
    with zipfile.ZipFile(destination) as archive:
        assert archive.read("a.json") == (source_dir / "a.json").read_bytes()
