"""Compilation sandbox: shared asset cache plus a per-request world.

The AssetCache is process-wide and read-only once populated: fonts, the
invoice template and the assets bundled next to it. Each compilation builds
its own SandboxWorld on top of it, with a fresh virtual filesystem and data
scope, so nothing inserted for one invoice is visible to another.
"""

import datetime
import json
import logging
import pathlib
import threading
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from ..errors import InvalidEncoding
from ..fonts import Font, FontBook, get_font_paths, scan_font_book
from ..version import __version__
from .vfs import BOM, VirtualFileSystem, normalize_path

logger = logging.getLogger(__name__)

TEMPLATE_DIR = pathlib.Path(__file__).resolve().parent.parent / 'templates'
TEMPLATE_NAME = 'invoice.typ'

MAIN_PATH = '/' + TEMPLATE_NAME
LOGO_PATH = '/logo.svg'
# The template reads the data scope value from this file
DATA_PATH = '/data.json'
DATA_KEY = 'data'

# Largest UTC offset, in hours, that still yields a date
MAX_UTC_OFFSET = 25


class World(Protocol):
    """What a template compiler may ask of its environment."""

    scope: Dict[str, Any]
    now: datetime.datetime

    def main(self) -> str: ...

    def source(self, path: str) -> str: ...

    def file(self, path: str) -> bytes: ...

    def font(self, index: int) -> Optional[Font]: ...

    def font_directories(self) -> List[str]: ...

    def today(self, offset: Optional[int] = None) -> Optional[datetime.date]: ...

    def materialize(self, root: pathlib.Path) -> pathlib.Path: ...


class AssetCache:
    """Lazily populated, read-only process-wide assets.

    Every member is populated at most once; the font book is scanned on first
    access and each font slot decodes its face on first request.
    """

    def __init__(self, font_paths: Iterable[str] = (), template_path: Optional[str] = None):
        self._font_paths = list(font_paths)
        self._template_path = (
            pathlib.Path(template_path) if template_path else TEMPLATE_DIR / TEMPLATE_NAME
        )
        self._lock = threading.Lock()
        self._book: Optional[FontBook] = None
        self._template: Optional[str] = None
        self._assets: Optional[Mapping[str, bytes]] = None

    def matches(self, font_paths: Iterable[str] = (), template_path: Optional[str] = None) -> bool:
        """True when built from the same font paths and template."""
        wanted = pathlib.Path(template_path) if template_path else TEMPLATE_DIR / TEMPLATE_NAME
        return list(font_paths) == self._font_paths and wanted == self._template_path

    @property
    def book(self) -> FontBook:
        if self._book is None:
            with self._lock:
                if self._book is None:
                    self._book = scan_font_book(get_font_paths(self._font_paths))
        return self._book

    def get_font(self, index: int) -> Optional[Font]:
        slot = self.book.slot(index)
        if slot is None:
            return None
        return slot.get()

    def font_directories(self) -> List[str]:
        return list(self.book.directories)

    def template_source(self) -> str:
        if self._template is None:
            with self._lock:
                if self._template is None:
                    raw = self._template_path.read_bytes()
                    try:
                        text = raw.decode('utf-8')
                    except UnicodeDecodeError:
                        raise InvalidEncoding(str(self._template_path)) from None
                    self._template = text[1:] if text.startswith(BOM) else text
        return self._template

    def bundled_assets(self) -> Mapping[str, bytes]:
        """Files shipped next to the template, keyed by virtual path."""
        if self._assets is None:
            with self._lock:
                if self._assets is None:
                    assets: Dict[str, bytes] = {}
                    base = self._template_path.parent
                    for f in sorted(base.rglob('*')):
                        if not f.is_file() or f == self._template_path:
                            continue
                        if f.name.startswith('.') or f.suffix == '.pyc':
                            continue
                        rel = f.relative_to(base).as_posix()
                        assets[normalize_path(rel)] = f.read_bytes()
                    self._assets = MappingProxyType(assets)
                    logger.debug("bundled assets: %s", ', '.join(assets) or '-')
        return self._assets


_default_cache: Optional[AssetCache] = None
_default_cache_lock = threading.Lock()


def default_asset_cache(
    font_paths: Iterable[str] = (), template_path: Optional[str] = None
) -> AssetCache:
    """The process-wide cache; arguments only matter on the first call.

    A later call asking for other font paths or another template gets the
    existing cache and a warning.
    """
    global _default_cache
    font_paths = list(font_paths)
    if _default_cache is None:
        with _default_cache_lock:
            if _default_cache is None:
                _default_cache = AssetCache(font_paths, template_path)
                return _default_cache
    if not _default_cache.matches(font_paths, template_path):
        logger.warning(
            "asset cache already initialized; ignoring font paths %s and template %s",
            font_paths,
            template_path,
        )
    return _default_cache


class SandboxWorld:
    """One compilation's view of the world.

    Shares the AssetCache by reference and owns a fresh virtual filesystem
    seeded with the bundled assets, a data scope and a snapshot clock.
    """

    def __init__(self, cache: AssetCache, now: Optional[datetime.datetime] = None):
        self.cache = cache
        self.vfs = VirtualFileSystem()
        for path, data in cache.bundled_assets().items():
            self.vfs.insert(path, data)
        self.scope: Dict[str, Any] = {}
        self.now = now or datetime.datetime.now(datetime.timezone.utc)

    def with_data(
        self,
        data: Any,
        *,
        version: str = __version__,
        commit_hash: str = 'unknown',
        now: Optional[datetime.datetime] = None,
    ) -> 'SandboxWorld':
        """Inject the document data and build metadata, and retake the clock snapshot."""
        self.scope[DATA_KEY] = data
        self.scope['VERSION'] = version
        self.scope['COMMIT_HASH'] = commit_hash
        self.now = now or datetime.datetime.now(datetime.timezone.utc)
        return self

    def define(self, name: str, value: Any) -> None:
        self.scope[name] = value

    def main(self) -> str:
        return MAIN_PATH

    def source(self, path: str) -> str:
        if normalize_path(path) == MAIN_PATH:
            return self.cache.template_source()
        return self.vfs.source_text(path)

    def file(self, path: str) -> bytes:
        return self.vfs.resolve(path).data

    def font(self, index: int) -> Optional[Font]:
        return self.cache.get_font(index)

    @property
    def book(self) -> FontBook:
        return self.cache.book

    def font_directories(self) -> List[str]:
        return self.cache.font_directories()

    def today(self, offset: Optional[int] = None) -> Optional[datetime.date]:
        """Date of the snapshot at a UTC offset in hours; None for unusable offsets."""
        hours = 0 if offset is None else offset
        if isinstance(hours, bool) or not isinstance(hours, int):
            return None
        if abs(hours) > MAX_UTC_OFFSET:
            return None
        now = self.now
        if now.tzinfo is None:
            now = now.replace(tzinfo=datetime.timezone.utc)
        utc = now.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return (utc + datetime.timedelta(hours=hours)).date()

    def materialize(self, root: pathlib.Path) -> pathlib.Path:
        """Lay the world out under ``root`` and return the main file's location.

        The data scope value is written to DATA_PATH. The main template is
        written last so both take precedence over virtual files at the same
        paths.
        """
        self.vfs.materialize(root)
        if DATA_KEY in self.scope:
            data_file = root / DATA_PATH.lstrip('/')
            data_file.write_text(
                json.dumps(self.scope[DATA_KEY], ensure_ascii=False), encoding='utf-8'
            )
        main = root / MAIN_PATH.lstrip('/')
        main.write_text(self.source(MAIN_PATH), encoding='utf-8')
        return main
