"""Tests for the filesystem fetcher."""

import json
import tarfile
import zipfile

import pytest
from bower_install import Endpoint
from bower_install import FetchError
from bower_install import FileSystemFetcher
from bower_install.sources import read_manifest


def write_package(path, name="package", version="1.0.0", dependencies=None):
    path.mkdir(parents=True, exist_ok=True)
    data = {"name": name, "version": version, "dependencies": dependencies or {}}
    (path / "bower.json").write_text(json.dumps(data))
    return path


def test_read_manifest_falls_back_to_component_json(tmp_path):
    (tmp_path / "component.json").write_text('{"name": "legacy", "version": "0.0.1"}')

    manifest = read_manifest(tmp_path)

    assert manifest.name == "legacy"
    assert read_manifest(tmp_path / "missing") is None


@pytest.mark.asyncio
async def test_fetch_directory_copies_content(tmp_path):
    source = write_package(tmp_path / "src" / "package", version="1.2.3")
    (source / "index.js").write_text("x")
    fetcher = FileSystemFetcher(work_dir=tmp_path / "work")

    result = await fetcher.fetch(Endpoint(source=str(source)))

    assert result.release == "1.2.3"
    assert result.manifest.name == "package"
    assert not result.archive
    assert (result.content_dir / "index.js").read_text() == "x"
    assert result.content_dir != source


@pytest.mark.asyncio
async def test_fetch_rejects_unsatisfied_target(tmp_path):
    source = write_package(tmp_path / "package", version="1.2.3")
    fetcher = FileSystemFetcher(work_dir=tmp_path / "work")

    with pytest.raises(FetchError, match="can't resolve target"):
        await fetcher.fetch(Endpoint(source=str(source), target="^2.0.0"))


@pytest.mark.asyncio
async def test_fetch_rejects_remote_sources(tmp_path):
    fetcher = FileSystemFetcher(work_dir=tmp_path / "work")

    with pytest.raises(FetchError, match="not a local source"):
        await fetcher.fetch(Endpoint(source="jquery"))


@pytest.mark.asyncio
async def test_fetch_tar_archive(tmp_path):
    package = write_package(tmp_path / "package")
    (package / "package").mkdir()
    (package / "package" / "test.js").write_text("test")
    archive = tmp_path / "package.tar"
    with tarfile.open(archive, "w") as tf:
        tf.add(package, arcname="package")
    fetcher = FileSystemFetcher(work_dir=tmp_path / "work")

    result = await fetcher.fetch(Endpoint(source=str(archive)))

    assert result.archive
    assert result.manifest.name == "package"
    assert (result.content_dir / "package" / "package" / "test.js").is_file()


@pytest.mark.asyncio
async def test_fetch_zip_archive_keeps_nested_archives(tmp_path):
    archive = tmp_path / "main.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("bower.json", json.dumps({"name": "package", "version": "1.0.0"}))
        zf.writestr("package.tar", b"not extracted")
    fetcher = FileSystemFetcher(work_dir=tmp_path / "work")

    result = await fetcher.fetch(Endpoint(source=str(archive)))

    assert result.release == "1.0.0"
    assert (result.content_dir / "package.tar").read_bytes() == b"not extracted"


@pytest.mark.asyncio
async def test_fetch_corrupt_archive(tmp_path):
    archive = tmp_path / "broken.tar.gz"
    archive.write_bytes(b"garbage")
    fetcher = FileSystemFetcher(work_dir=tmp_path / "work")

    with pytest.raises(FetchError, match="Failed to extract"):
        await fetcher.fetch(Endpoint(source=str(archive)))
