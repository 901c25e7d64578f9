"""Library store — owns the on-disk library layout and every mutation of it.

Layout under the output root:
    <lib>.kicad_sym     shared symbol container, one (symbol ...) entry per component
    <lib>.pretty/       <name>.kicad_mod per component
    <lib>.3dshapes/     <name>.wrl and <name>.step per component

The symbol container is edited at text level: only the span of the entry
being added, replaced or removed changes, every other byte is kept.
"""

import glob
import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass
from typing import Callable

from kiutils.footprint import Footprint

from builder import LIB_NAME
from errors import DuplicateComponent, LibraryError
from kicad_writer import empty_symbol_library
from models import RemovalReport

logger = logging.getLogger(__name__)

SYMBOL_TAG = "symbol"

_HEAD_RE = re.compile(r'\(\s*([^\s()"]+)\s*(?:"((?:[^"\\]|\\.)*)"|([^\s()"]+))?')

_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def container_lock(path: str) -> threading.Lock:
    """Process-wide lock for a container file, keyed by its resolved path."""
    key = os.path.realpath(path)
    with _locks_guard:
        return _locks.setdefault(key, threading.Lock())


@dataclass(frozen=True)
class Entry:
    """A direct child list of the container's root expression."""
    tag: str
    name: str
    start: int
    end: int


@dataclass(frozen=True)
class ScanResult:
    root_tag: str
    root_close: int
    entries: list[Entry]


def _skip_string(text: str, pos: int) -> int:
    """Index just past the quoted string starting at ``pos``."""
    i = pos + 1
    while i < len(text):
        c = text[i]
        if c == "\\":
            i += 2
            continue
        if c == '"':
            return i + 1
        i += 1
    raise LibraryError(f"Unterminated string starting at offset {pos}")


def _unescape(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def _head(text: str, start: int) -> tuple[str, str]:
    m = _HEAD_RE.match(text, start)
    if not m:
        return "", ""
    name = m.group(2)
    if name is not None:
        return m.group(1), _unescape(name)
    return m.group(1), m.group(3) or ""


def scan_entries(text: str) -> ScanResult:
    """Find the root expression's children without building a full tree.

    Parentheses inside quoted strings are ignored, so symbol names or
    property values containing ``(`` or ``)`` do not upset the depth count.
    """
    depth = 0
    root_open = None
    root_close = None
    child_start = 0
    entries = []
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c == '"':
            i = _skip_string(text, i)
            continue
        if c == "(":
            depth += 1
            if depth == 1:
                if root_open is not None:
                    raise LibraryError(f"Second root expression at offset {i}")
                root_open = i
            elif depth == 2:
                child_start = i
        elif c == ")":
            if depth == 0:
                raise LibraryError(f"Unbalanced ')' at offset {i}")
            if depth == 2:
                tag, name = _head(text, child_start)
                entries.append(Entry(tag=tag, name=name, start=child_start, end=i + 1))
            elif depth == 1:
                root_close = i
            depth -= 1
        i += 1

    if root_open is None or depth != 0 or root_close is None:
        raise LibraryError("Library file is empty or has unbalanced parentheses")
    root_tag, _ = _head(text, root_open)
    return ScanResult(root_tag=root_tag, root_close=root_close, entries=entries)


def _read(path: str) -> str:
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def atomic_write(path: str, content: str | bytes) -> None:
    """Write via a temp file in the same directory and rename over ``path``."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    binary = isinstance(content, bytes)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".lcscbridge-", suffix=".tmp")
    try:
        if binary:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
        else:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def _line_bounds(text: str, start: int, end: int) -> tuple[int, int]:
    """Widen a span to cover its indentation and trailing newline."""
    line_start = start
    while line_start > 0 and text[line_start - 1] in " \t":
        line_start -= 1
    if line_start > 0 and text[line_start - 1] != "\n":
        # Something else precedes the entry on its line; keep the indentation
        line_start = start
    line_end = end
    while line_end < len(text) and text[line_end] in " \t":
        line_end += 1
    if text.startswith("\r\n", line_end):
        line_end += 2
    elif line_end < len(text) and text[line_end] == "\n":
        line_end += 1
    else:
        line_end = end
    return line_start, line_end


class LibraryStore:

    def __init__(self, root: str, lib_name: str = LIB_NAME):
        self.root = root
        self.lib_name = lib_name

    @property
    def symbol_lib_path(self) -> str:
        return os.path.join(self.root, f"{self.lib_name}.kicad_sym")

    @property
    def footprint_dir(self) -> str:
        return os.path.join(self.root, f"{self.lib_name}.pretty")

    @property
    def model_dir(self) -> str:
        return os.path.join(self.root, f"{self.lib_name}.3dshapes")

    def create_directories(self) -> None:
        try:
            os.makedirs(self.root, exist_ok=True)
            os.makedirs(self.footprint_dir, exist_ok=True)
            os.makedirs(self.model_dir, exist_ok=True)
        except OSError as e:
            raise LibraryError(f"Cannot create library directories under {self.root}: {e}")

    # ── Symbol container ─────────────────────────────────────────────────────

    def add_or_update(self, container: str, key: str, payload: str,
                      overwrite: bool = False) -> bool:
        """Insert or replace the ``(symbol "<key>" ...)`` entry.

        Returns True when an existing entry was replaced. An existing entry
        with ``overwrite=False`` raises DuplicateComponent and the file is
        not touched.
        """
        with container_lock(container):
            try:
                text = _read(container) if os.path.exists(container) else empty_symbol_library()
            except OSError as e:
                raise LibraryError(f"Cannot read {container}: {e}")
            scan = scan_entries(text)
            existing = [e for e in scan.entries if e.tag == SYMBOL_TAG and e.name == key]

            if existing:
                if not overwrite:
                    raise DuplicateComponent(key)
                entry = existing[0]
                new_text = text[:entry.start] + payload.strip() + text[entry.end:]
                replaced = True
            else:
                head = text[:scan.root_close]
                if not head.endswith("\n"):
                    head += "\n"
                body = payload if payload.endswith("\n") else payload + "\n"
                new_text = head + body + text[scan.root_close:]
                replaced = False

            try:
                atomic_write(container, new_text)
            except OSError as e:
                raise LibraryError(f"Cannot write {container}: {e}")
        logger.debug("%s symbol %s in %s", "Replaced" if replaced else "Added", key, container)
        return replaced

    def remove(self, container: str, matcher: Callable[[str], bool]) -> int:
        """Delete every symbol entry whose name satisfies ``matcher``."""
        if not os.path.exists(container):
            return 0
        with container_lock(container):
            try:
                text = _read(container)
            except OSError as e:
                raise LibraryError(f"Cannot read {container}: {e}")
            scan = scan_entries(text)
            doomed = [e for e in scan.entries if e.tag == SYMBOL_TAG and matcher(e.name)]
            if not doomed:
                return 0
            for entry in reversed(doomed):
                start, end = _line_bounds(text, entry.start, entry.end)
                text = text[:start] + text[end:]
            try:
                atomic_write(container, text)
            except OSError as e:
                raise LibraryError(f"Cannot write {container}: {e}")
        return len(doomed)

    def symbol_names(self) -> list[str]:
        if not os.path.exists(self.symbol_lib_path):
            return []
        scan = scan_entries(_read(self.symbol_lib_path))
        return [e.name for e in scan.entries if e.tag == SYMBOL_TAG]

    # ── Per-component files ──────────────────────────────────────────────────

    def footprint_path(self, name: str) -> str:
        return os.path.join(self.footprint_dir, f"{name}.kicad_mod")

    def model_path(self, name: str, extension: str) -> str:
        return os.path.join(self.model_dir, f"{name}.{extension}")

    def write_footprint(self, name: str, footprint: Footprint) -> str:
        path = self.footprint_path(name)
        os.makedirs(self.footprint_dir, exist_ok=True)
        try:
            footprint.to_file(path)
        except OSError as e:
            raise LibraryError(f"Cannot write {path}: {e}")
        return path

    def write_wrl_model(self, name: str, text: str) -> str:
        path = self.model_path(name, "wrl")
        try:
            atomic_write(path, text)
        except OSError as e:
            raise LibraryError(f"Cannot write {path}: {e}")
        return path

    def write_step_model(self, name: str, data: bytes) -> str:
        path = self.model_path(name, "step")
        try:
            atomic_write(path, data)
        except OSError as e:
            raise LibraryError(f"Cannot write {path}: {e}")
        return path

    # ── Removal ──────────────────────────────────────────────────────────────

    def _remove_files(self, directory: str, patterns: list[str],
                      report: RemovalReport) -> int:
        count = 0
        for pattern in patterns:
            for path in sorted(glob.glob(os.path.join(glob.escape(directory), pattern))):
                try:
                    os.remove(path)
                except OSError as e:
                    report.errors.append(f"{path}: {e}")
                    continue
                logger.info("Removed %s", path)
                count += 1
        return count

    def remove_component(self, identifier: str) -> RemovalReport:
        """Remove every artifact named ``*_<identifier>`` from the library.

        Each artifact class is attempted even if an earlier one failed.
        """
        report = RemovalReport()
        suffix = f"_{identifier}"
        safe = glob.escape(suffix)

        try:
            report.symbols = self.remove(self.symbol_lib_path, lambda name: name.endswith(suffix))
        except LibraryError as e:
            report.errors.append(f"symbols: {e}")

        report.footprints = self._remove_files(
            self.footprint_dir, [f"*{safe}.kicad_mod"], report)
        report.models = self._remove_files(
            self.model_dir, [f"*{safe}.wrl", f"*{safe}.step"], report)
        return report
