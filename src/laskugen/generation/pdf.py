"""PDF serialization and concatenation (pypdf)."""

import io
import logging
from typing import TYPE_CHECKING, Dict, Sequence, Tuple

from pypdf import PasswordType, PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from ..errors import MergeError
from ..version import __version__

if TYPE_CHECKING:
    from .compiler import CompiledDocument

logger = logging.getLogger(__name__)

# Errors pypdf surfaces for damaged input besides its own hierarchy
_READ_ERRORS = (PyPdfError, ValueError, KeyError, TypeError, AttributeError, IndexError)


def count_pages(data: bytes) -> int:
    return len(PdfReader(io.BytesIO(data)).pages)


class PdfRenderer:
    """Serialize a compiled document into the final primary PDF.

    Only document metadata is rewritten; pages are carried over unchanged,
    so equal documents render to equal bytes.
    """

    def __init__(self, version: str = __version__, commit_hash: str = 'unknown'):
        self.version = version
        self.commit_hash = commit_hash

    def metadata(self, document: 'CompiledDocument') -> Dict[str, str]:
        meta = {'/Creator': f"laskugeneraattori {self.version} ({self.commit_hash})"}
        if document.title:
            meta['/Title'] = document.title
        if document.author:
            meta['/Author'] = document.author
        return meta

    def render(self, document: 'CompiledDocument') -> bytes:
        writer = PdfWriter(clone_from=PdfReader(io.BytesIO(document.pdf)))
        writer.add_metadata(self.metadata(document))
        out = io.BytesIO()
        writer.write(out)
        return out.getvalue()


class PdfMerger:
    """Concatenate PDFs page by page, in the order given."""

    def _open(self, name: str, data: bytes, index: int) -> PdfReader:
        try:
            reader = PdfReader(io.BytesIO(data))
            if reader.is_encrypted and reader.decrypt('') == PasswordType.NOT_DECRYPTED:
                raise MergeError(name, 'document is password protected', index)
            # touch the page tree so structural damage surfaces here
            pages = len(reader.pages)
        except _READ_ERRORS as e:
            raise MergeError(name, str(e) or type(e).__name__, index) from e
        if pages == 0:
            raise MergeError(name, 'document has no pages', index)
        return reader

    def merge(self, sources: Sequence[Tuple[str, bytes]]) -> bytes:
        """Merge ``(name, pdf_bytes)`` pairs into one PDF.

        The first source is the primary document and its document
        information is kept. Raises MergeError naming the first input that
        cannot be read or appended.
        """
        writer = PdfWriter()
        for index, (name, data) in enumerate(sources):
            reader = self._open(name, data, index)
            try:
                writer.append(reader)
                if index == 0 and reader.metadata:
                    writer.add_metadata({k: str(v) for k, v in reader.metadata.items()})
            except _READ_ERRORS as e:
                raise MergeError(name, str(e) or type(e).__name__, index) from e
            logger.debug("appended %s (%d pages)", name, len(reader.pages))
        out = io.BytesIO()
        writer.write(out)
        return out.getvalue()
