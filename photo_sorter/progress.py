"""
Terminal progress for a sort run.

Workers only ever put events on a queue; a single daemon thread owns the
tqdm bars and draws them.
"""
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tqdm import tqdm


class ProgressEventKind(Enum):
    START = 'start'
    MEDIA_FILES_CALCULATED = 'media_files_calculated'
    MEDIA_FILE_DONE = 'media_file_done'
    MEDIA_DONE = 'media_done'
    ALBUMS_CALCULATED = 'albums_calculated'
    ALBUM_FILE_DONE = 'album_file_done'
    ALBUMS_DONE = 'albums_done'
    ALL_DONE = 'all_done'


@dataclass(frozen=True)
class ProgressEvent:
    kind: ProgressEventKind
    count: int = 0


class ProgressReporter:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._queue: queue.Queue[Optional[ProgressEvent]] = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def start(self):
        if not self.enabled or self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="progress-ui", daemon=True)
        self._thread.start()

    def send(self, kind: ProgressEventKind, count: int = 0):
        if self.enabled:
            self._queue.put(ProgressEvent(kind, count))

    def close(self):
        if self._thread is None:
            return
        self._queue.put(None)
        self._thread.join()
        self._thread = None

    def _run(self):
        spinner = media_bar = album_bar = None
        try:
            while (event := self._queue.get()) is not None:
                kind = event.kind
                if kind == ProgressEventKind.START:
                    spinner = tqdm(desc="Indexing", unit=" files", position=0, leave=False)
                elif kind == ProgressEventKind.MEDIA_FILES_CALCULATED:
                    if spinner is not None:
                        spinner.update(event.count)
                    if media_bar is None:
                        media_bar = tqdm(total=0, desc="Media", unit=" files", position=1)
                    media_bar.total += event.count
                    media_bar.refresh()
                elif kind == ProgressEventKind.MEDIA_FILE_DONE and media_bar is not None:
                    media_bar.update(1)
                elif kind == ProgressEventKind.MEDIA_DONE and spinner is not None:
                    spinner.close()
                    spinner = None
                elif kind == ProgressEventKind.ALBUMS_CALCULATED:
                    album_bar = tqdm(total=event.count, desc="Albums", unit=" albums", position=2)
                elif kind == ProgressEventKind.ALBUM_FILE_DONE and album_bar is not None:
                    album_bar.update(1)
                elif kind == ProgressEventKind.ALL_DONE:
                    break
        finally:
            for bar in (spinner, media_bar, album_bar):
                if bar is not None:
                    bar.close()
