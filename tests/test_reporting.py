import csv

from photo_sorter.reporting import IndexReporter, log_index_summary
from photo_sorter.scanning.containers import DirectoryContainer


def test_index_summary(takeout_tree, icloud_tree):
    summary = IndexReporter(DirectoryContainer(takeout_tree)).build()

    assert summary.total == 5
    assert summary.by_quick_type == {"Media": 3, "Unknown": 2}
    assert summary.media_with_supplemental == 1
    assert summary.media_without_supplemental == 2
    assert summary.unknown_extensions == {".json": 1, ".txt": 1}

    albums = IndexReporter(DirectoryContainer(icloud_tree)).build()
    assert albums.by_quick_type == {"AlbumCsv": 1}


def test_index_csv(tmp_path, takeout_tree):
    report = tmp_path / "index.csv"

    IndexReporter(DirectoryContainer(takeout_tree)).build(report)

    with open(report, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    assert rows[0] == ["Path", "Quick Type", "Supplemental", "Modified (ms)"]
    by_path = {r[0]: r for r in rows[1:]}
    png = by_path["Google Photos/Photos from 2020/IMG_2.png"]
    assert png[1] == "Media"
    assert png[2] == "Google Photos/Photos from 2020/IMG_2.png.supplemental-metadata.json"
    assert png[3].isdigit()
    assert by_path["Google Photos/Photos from 2020/notes.txt"][1] == "Unknown"


def test_log_index_summary(takeout_tree, caplog):
    summary = IndexReporter(DirectoryContainer(takeout_tree)).build()
    with caplog.at_level("INFO"):
        log_index_summary(summary)
    assert "Entries: 5" in caplog.text
    assert ".txt (1)" in caplog.text
