"""Document generation entry point.

DocumentBuilder sequences one invoice through the pipeline:

    classify attachments -> data + barcode -> compile -> render -> merge

Every build is independent; the only state shared between builds is the
AssetCache.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..barcode import build_barcode
from ..config import Settings
from ..errors import BarcodeBuildError
from ..models import AttachmentInfo, Invoice, InvoiceAttachment
from ..version import __version__
from .attachments import ClassifiedAttachments, classify_attachments
from .compiler import CompiledDocument, TypstCompiler
from .pdf import PdfMerger, PdfRenderer, count_pages
from .world import AssetCache, SandboxWorld, default_asset_cache

logger = logging.getLogger(__name__)

PRIMARY_DOCUMENT_NAME = 'invoice.pdf'


@dataclass(frozen=True)
class BuildResult:
    pdf: bytes = field(repr=False)
    inlined: Tuple[AttachmentInfo, ...]
    page_count: int


def barcode_or_empty(iban: str, total: int) -> str:
    try:
        return build_barcode(iban, total)
    except BarcodeBuildError as e:
        logger.warning("payment barcode left empty: %s", e)
        return ''


def build_payload(
    invoice: Invoice, inlined: Sequence[AttachmentInfo], total: Optional[int] = None
) -> Dict[str, Any]:
    """Template data: the invoice, its total and the barcode built from that same total."""
    if total is None:
        total = invoice.total
    data = invoice.to_data(inlined, total=total)
    data['barcode'] = barcode_or_empty(invoice.bank_account_number, total)
    return data


class DocumentBuilder:
    def __init__(
        self,
        invoice: Invoice,
        attachments: Optional[Sequence[InvoiceAttachment]] = None,
        *,
        cache: Optional[AssetCache] = None,
        compiler=None,
        renderer: Optional[PdfRenderer] = None,
        merger: Optional[PdfMerger] = None,
        settings: Optional[Settings] = None,
    ):
        self.invoice = invoice
        self.attachments: List[InvoiceAttachment] = list(
            invoice.attachments if attachments is None else attachments
        )
        self.settings = settings or Settings.from_env()
        self.cache = cache or default_asset_cache(
            self.settings.font_paths, self.settings.template_path
        )
        self.compiler = compiler or TypstCompiler(
            typst_bin=self.settings.typst_bin,
            ignore_system_fonts=self.settings.ignore_system_fonts,
            utc_offset=self.settings.utc_offset,
        )
        self.renderer = renderer or PdfRenderer(commit_hash=self.settings.commit_hash)
        self.merger = merger or PdfMerger()

    def _prepare(self) -> Tuple[SandboxWorld, ClassifiedAttachments]:
        world, classified = classify_attachments(
            SandboxWorld(self.cache), self.attachments, self.invoice.attachment_descriptions
        )
        world.with_data(
            build_payload(self.invoice, classified.inlined),
            version=__version__,
            commit_hash=self.settings.commit_hash,
        )
        return world, classified

    def build_document(self) -> CompiledDocument:
        """Compile the invoice page(s) only, without merging PDF attachments."""
        world, _ = self._prepare()
        return self.compiler.compile(world)

    def build(self) -> BuildResult:
        """Run the whole pipeline.

        CompileError and MergeError propagate unchanged; a barcode failure
        only empties the barcode field.
        """
        world, classified = self._prepare()
        document = self.compiler.compile(world)
        primary = self.renderer.render(document)

        sources = [(PRIMARY_DOCUMENT_NAME, primary)]
        sources.extend((a.filename, a.data) for a in classified.mergeable)
        pdf = self.merger.merge(sources)
        page_count = count_pages(pdf)
        logger.info(
            "built invoice '%s': %d pages, %d inlined, %d merged",
            self.invoice.subject,
            page_count,
            len(classified.inlined),
            len(classified.mergeable),
        )
        return BuildResult(pdf=pdf, inlined=tuple(classified.inlined), page_count=page_count)
