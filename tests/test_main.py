import sqlite3

import pytest

from photo_sorter import main as main_module
from photo_sorter.main import main, parse_args


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    # leave pytest's own log capture in place
    monkeypatch.setattr(main_module, "setup_logging", lambda verbose: None)


def test_parse_sort_args():
    args = parse_args(["-v", "sort", "--directory", "/data", "--input-takeout", "t.zip",
                       "--dry-run", "--workers", "2", "--tz", "+10:00"])
    assert args.verbose
    assert args.command == "sort"
    assert args.input_takeout.name == "t.zip"
    assert args.input_icloud is None
    assert args.dry_run
    assert args.workers == 2
    assert args.tz.utcoffset(None).total_seconds() == 36000


def test_bad_tz_is_rejected():
    with pytest.raises(SystemExit):
        parse_args(["index", "x", "--tz", "Mars/Olympus"])


def test_sort_command(tmp_path, takeout_tree, icloud_tree):
    code = main(["sort", "--directory", str(tmp_path),
                 "--input-takeout", "takeout", "--input-icloud", "icloud",
                 "--output", "library", "--workers", "1", "--no-progress"])

    assert code == 0
    out = tmp_path / "library"
    assert (out / "2020/01/02/0304-05000.jpg").exists()
    assert (out / "albums/Holiday.md").exists()
    assert (out / "photo-sorter.log").exists()


def test_sort_output_defaults_to_directory(tmp_path, takeout_tree):
    code = main(["sort", "--directory", str(tmp_path), "--input-takeout", str(takeout_tree),
                 "--no-progress", "--skip-albums"])

    assert code == 0
    assert (tmp_path / "2020/01/02/0304-05000.jpg").exists()


def test_sort_dry_run(tmp_path, takeout_tree):
    code = main(["sort", "--directory", str(tmp_path), "--input-takeout", "takeout",
                 "--output", "library", "--dry-run", "--no-progress"])

    assert code == 0
    assert not (tmp_path / "library").exists()


def test_sort_missing_input_is_fatal(tmp_path):
    code = main(["sort", "--directory", str(tmp_path), "--input-takeout", "nope.zip", "--no-progress"])
    assert code == 1


def test_sort_requires_an_input(tmp_path):
    assert main(["sort", "--directory", str(tmp_path), "--no-progress"]) == 1


def test_sort_unreadable_archive_is_fatal(tmp_path):
    (tmp_path / "bad.zip").write_bytes(b"garbage")
    code = main(["sort", "--directory", str(tmp_path), "--input-icloud", "bad.zip", "--dry-run", "--no-progress"])
    assert code == 1


def test_index_command(tmp_path, takeout_tree):
    report = tmp_path / "report.csv"
    assert main(["index", str(takeout_tree), "--report-csv", str(report)]) == 0
    assert report.read_text(encoding="utf-8").startswith("Path,Quick Type")


def test_db_command(tmp_path, takeout_tree):
    db_path = tmp_path / "index.sqlite"
    assert main(["db", str(takeout_tree), "--db", str(db_path), "--workers", "1"]) == 0

    conn = sqlite3.connect(db_path)
    assert conn.execute("SELECT COUNT(*) FROM media_item").fetchone()[0] == 2
    conn.close()


def test_markdown_command_prints(tmp_path, make_jpeg, capsys):
    jpg = make_jpeg(tmp_path / "IMG_1.jpg", exif_datetime="2020:01:02 03:04:05")

    assert main(["markdown", "--input", str(jpg)]) == 0

    assert capsys.readouterr().out == f"---\noriginal-paths:\n  - {jpg}\n---\n"


def test_markdown_command_merges_into_output(tmp_path, make_jpeg, capsys):
    jpg = make_jpeg(tmp_path / "IMG_1.jpg")
    md = tmp_path / "notes" / "IMG_1.jpg.md"
    md.parent.mkdir()
    md.write_text("---\ntags:\n  - family\n---\nBirthday\n")

    assert main(["markdown", "--input", str(jpg), "--output", str(md)]) == 0

    expected = f"---\ntags:\n  - family\noriginal-paths:\n  - {jpg}\n---\nBirthday\n"
    assert md.read_text() == expected
    assert capsys.readouterr().out == expected


def test_markdown_command_missing_file(tmp_path):
    assert main(["markdown", "--input", str(tmp_path / "nope.jpg")]) == 1


def test_markdown_command_unsupported_file(tmp_path):
    f = tmp_path / "fake.jpg"
    f.write_bytes(b"nothing to see")
    assert main(["markdown", "--input", str(f)]) == 1


def test_info_command(tmp_path, make_jpeg, capsys):
    jpg = make_jpeg(tmp_path / "IMG_1.jpg", exif_datetime="2020:01:02 03:04:05")

    assert main(["info", "--input", str(jpg)]) == 0

    out = capsys.readouterr().out
    assert "Accurate type:  Jpg" in out
    assert "Guessed datetime: 2020-01-02T03:04:05.000Z" in out
    assert "Planned path:     2020/01/02/0304-05000.jpg" in out
    assert "Image DateTime" in out
    assert "MP4: -" in out


def test_info_command_inside_zip(tmp_path, takeout_tree, make_zip, capsys):
    entries = {
        p.relative_to(takeout_tree).as_posix(): p.read_bytes()
        for p in takeout_tree.rglob("*") if p.is_file()
    }
    z = make_zip(tmp_path / "takeout.zip", entries)

    code = main(["info", "--root", str(z), "--tz", "Z",
                 "--input", "Google Photos/Photos from 2020/IMG_2.png"])

    assert code == 0
    out = capsys.readouterr().out
    assert "Accurate type:  Png" in out
    assert "people: ['Alice', 'Bob']" in out
    assert "Guessed datetime: 2008-05-30T15:56:01.000Z" in out


def test_info_command_missing_entry(takeout_tree):
    assert main(["info", "--root", str(takeout_tree), "--input", "nope.jpg"]) == 1
