"""
Markdown sidecars: YAML front matter managed by the sorter, free-form
body owned by the user.

Only 'original-paths' is managed. Every other front-matter key is loaded,
kept in place and dumped back, so hand-added fields survive re-runs.
"""
import logging
import re
import threading
from typing import Optional

import yaml

from .. import config
from ..exceptions import FileUnreadableError
from ..scanning.containers import DirectoryContainer
from ..scanning.hasher import FileHasher

_CLOSING_DELIMITER = re.compile(r'^---', re.MULTILINE)


class _IndentedDumper(yaml.SafeDumper):
    """Indents block sequences under their key ('  - item')."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


def split_front_matter(content: str) -> tuple[str, str]:
    """
    Returns (yaml, body). Content without a usable front-matter block
    comes back as ("", content).
    """
    text = content.lstrip('\r\n')
    if text.startswith('---\r\n'):
        line_ending = '\r\n'
    elif text.startswith('---\n'):
        line_ending = '\n'
    else:
        return '', content

    rest = text[3 + len(line_ending):]
    close = _CLOSING_DELIMITER.search(rest)
    if close is None:
        return '', content

    front = rest[:close.start()]
    if not front.strip():
        return '', content

    after = rest[close.end():]
    if after.startswith('\r\n'):
        body = after[2:]
    elif after.startswith('\n'):
        body = after[1:]
    elif after:
        body = line_ending + after
    else:
        body = ''

    return front.rstrip('\r\n') + '\n', body


def emit_yaml(doc: dict) -> str:
    """Block-style, insertion-ordered YAML ending in a single newline."""
    if not doc:
        return ''
    text = yaml.dump(
        doc,
        Dumper=_IndentedDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=4096,
    )
    if text.startswith('---'):
        text = text[3:]
    text = text.strip('\r\n')
    return f"{text}\n" if text else ''


def merge_yaml(existing_yaml: str, original_paths: list[str]) -> str:
    """
    Adds any new original paths to the front matter. Front matter that
    does not load as a mapping is returned untouched.
    """
    doc = {}
    if existing_yaml.strip():
        try:
            loaded = yaml.safe_load(existing_yaml)
        except yaml.YAMLError as e:
            logging.warning(f"Unable to parse front matter, leaving it as is: {e}")
            return existing_yaml
        if loaded is not None and not isinstance(loaded, dict):
            logging.warning("Front matter is not a mapping, leaving it as is")
            return existing_yaml
        doc = loaded or {}

    key = config.FRONT_MATTER_ORIGINAL_PATHS
    current = doc.get(key)
    if current is None:
        doc[key] = list(dict.fromkeys(original_paths))
    elif isinstance(current, list):
        for path in original_paths:
            if path not in current:
                current.append(path)
    else:
        logging.warning(f"Front matter '{key}' is not a list, leaving it as is")

    return emit_yaml(doc)


def assemble_markdown(existing_content: str, original_paths: list[str]) -> Optional[str]:
    """
    Returns the new sidecar content, or None when the merged front
    matter is identical to what is already there.
    """
    existing_yaml, body = split_front_matter(existing_content)
    new_yaml = merge_yaml(existing_yaml, original_paths)
    if new_yaml == existing_yaml:
        return None
    if not new_yaml:
        return body
    return f"---\n{new_yaml}---\n{body}"


class MarkdownWriter:
    """
    Reads, merges and writes sidecars through the output container.
    Writes happen only when the bytes actually change.
    """

    def __init__(self, output: DirectoryContainer, dry_run: bool = False):
        self.output = output
        self.dry_run = dry_run
        self.hasher = FileHasher()
        # one sidecar can be reached from several inputs in the same run
        self._lock = threading.Lock()

    def write_sidecar(self, path: str, original_paths: list[str]) -> bool:
        """Returns True if the sidecar was (or in dry-run, would be) written."""
        with self._lock:
            existing = self.read_existing(path)
            content = assemble_markdown(existing or '', original_paths)
            if content is None:
                logging.debug(f"Sidecar unchanged: {path}")
                return False
            return self._write_if_changed(path, content, existing)

    def write_document(self, path: str, content: str) -> bool:
        with self._lock:
            return self._write_if_changed(path, content, self.read_existing(path))

    def read_existing(self, path: str) -> Optional[str]:
        if not self.output.exists(path):
            return None
        try:
            return self.output.read_bytes(path).decode('utf-8')
        except UnicodeDecodeError as e:
            raise FileUnreadableError(f"Existing markdown {path} is not UTF-8: {e}") from e

    def _write_if_changed(self, path: str, content: str, existing: Optional[str]) -> bool:
        data = content.encode('utf-8')
        if existing is not None:
            old = self.hasher.compute_bytes(existing.encode('utf-8'))
            new = self.hasher.compute_bytes(data)
            if old.long_checksum == new.long_checksum:
                logging.debug(f"Markdown unchanged: {path}")
                return False
        self.output.write(path, data, self.dry_run)
        return True
