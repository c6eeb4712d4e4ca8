"""Per-compilation virtual filesystem.

Paths are Typst-style virtual paths: rooted at ``/``, with ``.`` and ``..``
resolved inside the root so no path can point outside of it.
"""

import logging
import pathlib
from typing import Dict, Iterator, List, Optional

from ..errors import InvalidEncoding, SandboxFileNotFound

logger = logging.getLogger(__name__)

BOM = '\ufeff'

# Files the engine parses as source text; everything else stays binary
TEXT_SUFFIXES = {'.typ'}


def normalize_path(path: str) -> str:
    """Normalize a virtual path, clamping ``..`` at the root.

    >>> normalize_path('attachments/../../etc/x.png')
    '/etc/x.png'
    """
    if '\x00' in path:
        raise ValueError(f"invalid virtual path: {path!r}")
    parts: List[str] = []
    for comp in path.replace('\\', '/').split('/'):
        if comp in ('', '.'):
            continue
        if comp == '..':
            if parts:
                parts.pop()
            continue
        parts.append(comp)
    if not parts:
        raise ValueError(f"virtual path has no file component: {path!r}")
    return '/' + '/'.join(parts)


class VirtualFile:
    """File content plus its source text, decoded on first request."""

    __slots__ = ('data', '_source')

    def __init__(self, data: bytes, source: Optional[str] = None):
        self.data = bytes(data)
        self._source = source

    def source(self, path: str) -> str:
        if self._source is None:
            try:
                text = self.data.decode('utf-8')
            except UnicodeDecodeError:
                raise InvalidEncoding(path) from None
            self._source = text[1:] if text.startswith(BOM) else text
        return self._source

    @property
    def decoded(self) -> bool:
        return self._source is not None

    def __len__(self) -> int:
        return len(self.data)


class VirtualFileSystem:
    def __init__(self):
        self._files: Dict[str, VirtualFile] = {}

    def insert(self, path: str, data: bytes, source: Optional[str] = None) -> bool:
        """Store ``data`` under ``path``; returns True when an entry was replaced.

        A second insert for the same path overwrites the first.
        """
        key = normalize_path(path)
        replaced = key in self._files
        if replaced:
            logger.debug("overwriting virtual file %s", key)
        self._files[key] = VirtualFile(data, source)
        return replaced

    def resolve(self, path: str) -> VirtualFile:
        key = normalize_path(path)
        try:
            return self._files[key]
        except KeyError:
            raise SandboxFileNotFound(key) from None

    def source_text(self, path: str) -> str:
        return self.resolve(path).source(normalize_path(path))

    def paths(self) -> List[str]:
        return sorted(self._files)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return normalize_path(path) in self._files
        except ValueError:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths())

    def __len__(self) -> int:
        return len(self._files)

    def materialize(self, root: pathlib.Path) -> List[pathlib.Path]:
        """Write every file below ``root``; source files are written as decoded text."""
        written = []
        for key, entry in sorted(self._files.items()):
            target = root.joinpath(*key.lstrip('/').split('/'))
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.suffix.lower() in TEXT_SUFFIXES:
                target.write_text(entry.source(key), encoding='utf-8')
            else:
                target.write_bytes(entry.data)
            written.append(target)
        return written
