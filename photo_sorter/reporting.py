import csv
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional

from .models import QuickFileType, ScanEntry
from .scanning.classifier import detect_supplemental
from .scanning.containers import Container


@dataclass
class IndexSummary:
    total: int = 0
    by_quick_type: Counter = field(default_factory=Counter)
    media_with_supplemental: int = 0
    media_without_supplemental: int = 0
    unknown_extensions: Counter = field(default_factory=Counter)


class IndexReporter:
    """
    Classifies every entry of an export by name and reports what the
    sorter would pick up and what it would ignore.
    """

    def __init__(self, container: Container):
        self.container = container

    def build(self, output_csv: Optional[Path] = None) -> IndexSummary:
        entries = self.container.enumerate()
        summary = IndexSummary()

        logging.info(f"Indexing {len(entries)} entries in {self.container}")

        rows = []
        for entry in entries:
            summary.total += 1
            summary.by_quick_type[entry.quick_type.value] += 1

            supp_path = None
            if entry.quick_type == QuickFileType.MEDIA:
                supp_path = detect_supplemental(entry.path, self.container)
                if supp_path:
                    summary.media_with_supplemental += 1
                else:
                    summary.media_without_supplemental += 1
            elif entry.quick_type == QuickFileType.UNKNOWN:
                ext = PurePosixPath(entry.path).suffix.lower() or '(none)'
                summary.unknown_extensions[ext] += 1

            rows.append(self._row(entry, supp_path))

        if output_csv:
            self._write_csv(output_csv, rows)

        return summary

    def _row(self, entry: ScanEntry, supp_path: Optional[str]) -> list:
        return [
            entry.path,
            entry.quick_type.value,
            supp_path or "",
            entry.modified_ms if entry.modified_ms is not None else "",
        ]

    def _write_csv(self, output_csv: Path, rows: list[list]):
        headers = ["Path", "Quick Type", "Supplemental", "Modified (ms)"]
        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            writer.writerows(rows)
        logging.info(f"Index report written to {output_csv}")


def log_index_summary(summary: IndexSummary):
    logging.info(f"Entries: {summary.total}")
    for quick_type, count in sorted(summary.by_quick_type.items()):
        logging.info(f"  {quick_type}: {count}")
    logging.info(
        f"Media with supplemental JSON: {summary.media_with_supplemental}, "
        f"without: {summary.media_without_supplemental}"
    )
    if summary.unknown_extensions:
        top = ", ".join(f"{ext} ({n})" for ext, n in summary.unknown_extensions.most_common(10))
        logging.info(f"Unknown extensions: {top}")
