import io
import logging
import pathlib
import struct
import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Typst-usable font formats
FONT_EXTENSIONS = {'.ttf', '.otf', '.ttc', '.otc'}
COLLECTION_EXTENSIONS = {'.ttc', '.otc'}


def _format_size(size_bytes: int) -> str:
    """Format file size in human-readable form"""
    if size_bytes < 1024:
        return f"{size_bytes}B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f}KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f}MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f}GB"


def get_font_paths(extra: Iterable[str] = ()) -> List[str]:
    """Get font paths in order of preference.

    Order:
    1) Explicitly configured paths
    2) Project-local assets/fonts (+/static)
    3) Packaged fonts next to this module: <module_dir>/fonts and family subdirs
    """
    font_paths: List[str] = [str(p) for p in extra if p]

    local_fonts = pathlib.Path('assets/fonts')
    if local_fonts.exists():
        font_paths.append(str(local_fonts))
        static_path = local_fonts / 'static'
        if static_path.exists():
            font_paths.append(str(static_path))

    module_fonts_base = pathlib.Path(__file__).parent / 'fonts'
    if module_fonts_base.exists():
        font_paths.append(str(module_fonts_base))
        for sub in sorted(module_fonts_base.iterdir()):
            if sub.is_dir() and not sub.name.startswith('.'):
                font_paths.append(str(sub))

    # Return unique paths, preserving order
    return list(dict.fromkeys(font_paths))


def _family_name(ttfont) -> Optional[str]:
    """Typographic family (name ID 16) falling back to the legacy family (ID 1)."""
    table = ttfont.get('name')
    if not table:
        return None
    by_id = {}
    for rec in table.names:
        if rec.nameID in (1, 16) and rec.nameID not in by_id:
            try:
                by_id[rec.nameID] = rec.toUnicode().strip()
            except UnicodeDecodeError:
                continue
    return by_id.get(16) or by_id.get(1) or None


@dataclass(frozen=True)
class Font:
    """A decoded font face, shared read-only between compilations."""

    data: bytes = field(repr=False)
    index: int
    family: Optional[str]
    glyph_count: int


class FontSlot:
    """One face of a font file, decoded on first use and memoized.

    The first ``get`` takes the slot lock and decodes; later calls read the
    memoized value without locking. A failed decode is memoized as None.
    """

    def __init__(self, path: pathlib.Path, index: int = 0, family: Optional[str] = None):
        self.path = pathlib.Path(path)
        self.index = index
        self.family = family
        self._lock = threading.Lock()
        self._loaded = False
        self._font: Optional[Font] = None

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get(self) -> Optional[Font]:
        if self._loaded:
            return self._font
        with self._lock:
            if not self._loaded:
                self._font = self._decode()
                self._loaded = True
        return self._font

    def _decode(self) -> Optional[Font]:
        from fontTools.ttLib import TTFont, TTLibError

        try:
            data = self.path.read_bytes()
            kwargs = {}
            if self.path.suffix.lower() in COLLECTION_EXTENSIONS:
                kwargs['fontNumber'] = self.index
            ttfont = TTFont(io.BytesIO(data), lazy=True, **kwargs)
            try:
                font = Font(
                    data=data,
                    index=self.index,
                    family=_family_name(ttfont) or self.family,
                    glyph_count=len(ttfont.getGlyphOrder()),
                )
            finally:
                ttfont.close()
        except (OSError, TTLibError, ValueError, KeyError, IndexError, struct.error) as e:
            logger.warning("font %s#%d could not be decoded: %s", self.path, self.index, e)
            return None
        logger.debug("decoded font %s#%d (%s)", self.path, self.index, font.family)
        return font

    def __repr__(self) -> str:
        return f"FontSlot(path={str(self.path)!r}, index={self.index}, family={self.family!r})"


@dataclass(frozen=True)
class FontInfo:
    index: int
    path: str
    face_index: int
    family: Optional[str]
    size: int


class FontBook:
    """Ordered catalog of font slots; a slot's position is its font index."""

    def __init__(self, slots: Sequence[FontSlot], directories: Sequence[str] = ()):
        self.slots: List[FontSlot] = list(slots)
        self.directories: List[str] = list(directories)

    def __len__(self) -> int:
        return len(self.slots)

    def slot(self, index: int) -> Optional[FontSlot]:
        if 0 <= index < len(self.slots):
            return self.slots[index]
        return None

    def infos(self) -> List[FontInfo]:
        infos = []
        for i, slot in enumerate(self.slots):
            try:
                size = slot.path.stat().st_size
            except OSError:
                size = 0
            infos.append(
                FontInfo(
                    index=i,
                    path=str(slot.path),
                    face_index=slot.index,
                    family=slot.family,
                    size=size,
                )
            )
        return infos

    def families(self) -> List[str]:
        return sorted({s.family for s in self.slots if s.family})


def _faces_in_file(path: pathlib.Path) -> List[FontSlot]:
    """One slot per face; collections contribute one slot per member font."""
    from fontTools.ttLib import TTFont, TTLibError
    from fontTools.ttLib.ttCollection import TTCollection

    slots: List[FontSlot] = []
    try:
        if path.suffix.lower() in COLLECTION_EXTENSIONS:
            collection = TTCollection(str(path), lazy=True)
            try:
                for i, ttf in enumerate(collection.fonts):
                    slots.append(FontSlot(path, i, _family_name(ttf)))
            finally:
                collection.close()
        else:
            ttf = TTFont(str(path), lazy=True)
            try:
                slots.append(FontSlot(path, 0, _family_name(ttf)))
            finally:
                ttf.close()
    except (OSError, TTLibError, ValueError, KeyError, struct.error) as e:
        logger.warning("skipping unreadable font file %s: %s", path, e)
    return slots


def scan_font_book(paths: Iterable[str]) -> FontBook:
    """Scan directories for font files and build the font book.

    Files are visited in sorted order so slot indices are stable for a
    given set of directories.
    """
    slots: List[FontSlot] = []
    directories: List[str] = []
    seen = set()
    for p in paths:
        root = pathlib.Path(p)
        if not root.is_dir():
            continue
        directories.append(str(root))
        for f in sorted(root.rglob('*')):
            if not f.is_file() or f.suffix.lower() not in FONT_EXTENSIONS:
                continue
            key = f.resolve()
            if key in seen:
                continue
            seen.add(key)
            slots.extend(_faces_in_file(f))
    logger.debug("font book: %d slots from %d directories", len(slots), len(directories))
    return FontBook(slots, directories)
