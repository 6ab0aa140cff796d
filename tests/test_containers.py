import os
import zipfile
import zlib
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta, timezone

import pytest

from photo_sorter.exceptions import FileUnreadableError, InputInvalidError
from photo_sorter.models import QuickFileType
from photo_sorter.scanning.containers import DirectoryContainer, ZipContainer, open_container


def test_directory_enumerate_is_recursive_and_relative(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "IMG_2.JPG").write_bytes(b"x")
    (tmp_path / "a.csv").write_text("imageName\n")
    (tmp_path / "b" / "c").mkdir()
    (tmp_path / "b" / "c" / "metadata.json").write_text("{}")

    entries = DirectoryContainer(tmp_path).enumerate()
    paths = [e.path for e in entries]

    assert sorted(paths) == ["a.csv", "b/IMG_2.JPG", "b/c/metadata.json"]
    types = {e.path: e.quick_type for e in entries}
    assert types["a.csv"] == QuickFileType.ALBUM_CSV
    assert types["b/IMG_2.JPG"] == QuickFileType.MEDIA
    assert types["b/c/metadata.json"] == QuickFileType.ALBUM_JSON
    assert all(e.modified_ms is not None for e in entries)


def test_directory_read_side(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "f.bin").write_bytes(b"hello")
    c = DirectoryContainer(tmp_path)

    assert c.exists("sub/f.bin")
    assert not c.exists("sub/missing.bin")
    with c.open("sub/f.bin") as f:
        assert f.read() == b"hello"
        f.seek(0)
        assert f.read(2) == b"he"
    assert c.metadata("sub/f.bin").len == 5


def test_directory_missing_file_raises(tmp_path):
    c = DirectoryContainer(tmp_path)
    with pytest.raises(FileUnreadableError):
        c.open("nope.jpg")
    with pytest.raises(FileUnreadableError):
        c.metadata("nope.jpg")


def test_directory_write_creates_parents(tmp_path):
    c = DirectoryContainer(tmp_path / "out")
    c.write("2020/01/02/0304-05000.jpg", b"data")
    assert (tmp_path / "out" / "2020" / "01" / "02" / "0304-05000.jpg").read_bytes() == b"data"


def test_directory_dry_run_has_no_side_effects(tmp_path):
    c = DirectoryContainer(tmp_path / "out")
    c.write("a/b.jpg", b"data", dry_run=True)
    c.set_modified("a/b.jpg", 1_000_000, dry_run=True)
    assert not (tmp_path / "out").exists()


def test_directory_set_modified(tmp_path):
    c = DirectoryContainer(tmp_path)
    c.write("a.jpg", b"data")
    c.set_modified("a.jpg", 1577934245123)
    assert os.stat(tmp_path / "a.jpg").st_mtime_ns == 1577934245123 * 1_000_000
    assert c.metadata("a.jpg").modified_ms == 1577934245123


def test_zip_enumerate_skips_directories(tmp_path, make_zip):
    z = make_zip(tmp_path / "export.zip", {
        "Takeout/": b"",
        "Takeout/Google Photos/IMG_1.jpg": b"jpeg",
        "Takeout/Google Photos/metadata.json": b"{}",
    })
    with ZipContainer(z, timezone.utc) as c:
        entries = c.enumerate()

    assert [e.path for e in entries] == [
        "Takeout/Google Photos/IMG_1.jpg",
        "Takeout/Google Photos/metadata.json",
    ]
    assert entries[0].quick_type == QuickFileType.MEDIA
    assert entries[1].quick_type == QuickFileType.ALBUM_JSON


def test_zip_times_use_configured_offset(tmp_path, make_zip):
    z = make_zip(tmp_path / "export.zip", {"a.jpg": b"x"}, date_time=(2020, 1, 2, 3, 4, 6))

    with ZipContainer(z, timezone.utc) as c:
        utc_meta = c.metadata("a.jpg")
    with ZipContainer(z, timezone(timedelta(hours=10))) as c:
        aest_meta = c.metadata("a.jpg")

    expected = int(datetime(2020, 1, 2, 3, 4, 6, tzinfo=UTC).timestamp()) * 1000
    assert utc_meta.modified_ms == expected
    assert aest_meta.modified_ms == expected - 10 * 3600 * 1000
    assert utc_meta.created_ms is None
    assert utc_meta.len == 1


def test_zip_open_is_seekable(tmp_path, make_zip):
    z = make_zip(tmp_path / "export.zip", {"a.jpg": b"abcdef"})
    with ZipContainer(z, timezone.utc) as c:
        with c.open("a.jpg") as f:
            assert f.read(3) == b"abc"
            f.seek(0)
            assert f.read() == b"abcdef"
        with pytest.raises(FileUnreadableError):
            c.open("b.jpg")
        assert c.exists("a.jpg")
        assert not c.exists("b.jpg")


def test_zip_skips_unsafe_names(tmp_path):
    z = tmp_path / "evil.zip"
    with zipfile.ZipFile(z, "w") as zf:
        zf.writestr("../evil.jpg", b"x")
        zf.writestr("ok.jpg", b"y")

    with ZipContainer(z, timezone.utc) as c:
        assert [e.path for e in c.enumerate()] == ["ok.jpg"]


def test_zip_concurrent_reads(tmp_path, make_zip):
    entries = {f"IMG_{i}.jpg": bytes([i]) * (1000 + i) for i in range(40)}
    z = make_zip(tmp_path / "export.zip", entries)

    with ZipContainer(z, timezone.utc) as c:
        with ThreadPoolExecutor(max_workers=8) as ex:
            results = dict(zip(entries, ex.map(c.read_bytes, entries)))

    assert results == entries


def test_unreadable_archive_is_invalid_input(tmp_path):
    bad = tmp_path / "bad.zip"
    bad.write_bytes(b"this is not a zip")
    with pytest.raises(InputInvalidError):
        ZipContainer(bad, timezone.utc)


def test_open_container_dispatch(tmp_path, make_zip):
    z = make_zip(tmp_path / "export.zip", {"a.jpg": b"x"})

    assert isinstance(open_container(tmp_path), DirectoryContainer)
    c = open_container(z, timezone.utc)
    assert isinstance(c, ZipContainer)
    c.close()

    with pytest.raises(InputInvalidError):
        open_container(tmp_path / "missing")


def test_zip_corrupt_member_is_unreadable(tmp_path, corrupt_member):
    z = tmp_path / "export.zip"
    with zipfile.ZipFile(z, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("bad.jpg", b"\xff\xd8\xff" + b"pixels " * 500)
        zf.writestr("good.jpg", b"fine")
    corrupt_member(z, "bad.jpg")

    with ZipContainer(z, timezone.utc) as c:
        with pytest.raises(FileUnreadableError):
            c.read_bytes("bad.jpg")
        assert c.read_bytes("good.jpg") == b"fine"


@pytest.mark.parametrize("error", [zlib.error("invalid distance too far back"), EOFError("truncated")])
def test_zip_decompression_errors_are_unreadable(tmp_path, make_zip, monkeypatch, error):
    z = make_zip(tmp_path / "export.zip", {"a.jpg": b"x"})

    def fail(member):
        raise error

    with ZipContainer(z, timezone.utc) as c:
        monkeypatch.setattr(c._zip, "read", fail)
        with pytest.raises(FileUnreadableError):
            c.open("a.jpg")


def test_zip_backslash_names_are_normalized(tmp_path):
    z = tmp_path / "windows.zip"
    with zipfile.ZipFile(z, "w") as zf:
        zf.writestr(zipfile.ZipInfo("Takeout\\Google Photos\\IMG_1.jpg", date_time=(2020, 1, 2, 3, 4, 6)), b"jpg")
        zf.writestr("C:\\evil.jpg", b"x")

    with ZipContainer(z, timezone.utc) as c:
        paths = [e.path for e in c.enumerate()]
        assert paths == ["Takeout/Google Photos/IMG_1.jpg"]
        assert c.exists("Takeout/Google Photos/IMG_1.jpg")
        assert c.read_bytes("Takeout/Google Photos/IMG_1.jpg") == b"jpg"
        assert c.metadata("Takeout/Google Photos/IMG_1.jpg").len == 3
