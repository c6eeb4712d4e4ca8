"""Generation package: invoice data to a finished PDF.

- vfs: per-compilation virtual filesystem
- world: process-wide asset cache and the per-request sandbox world
- attachments: inline vs. merged attachment routing
- compiler: Typst compilation of a world
- pdf: PDF serialization and merging
- core: DocumentBuilder, the pipeline entry point
"""

from .attachments import ClassifiedAttachments, attachment_path, classify_attachments
from .compiler import CompiledDocument, TypstCompiler, parse_diagnostics, typst_version
from .core import BuildResult, DocumentBuilder, build_payload
from .pdf import PdfMerger, PdfRenderer, count_pages
from .vfs import VirtualFile, VirtualFileSystem, normalize_path
from .world import AssetCache, SandboxWorld, World, default_asset_cache

__all__ = [
    'AssetCache',
    'BuildResult',
    'ClassifiedAttachments',
    'CompiledDocument',
    'DocumentBuilder',
    'PdfMerger',
    'PdfRenderer',
    'SandboxWorld',
    'TypstCompiler',
    'VirtualFile',
    'VirtualFileSystem',
    'World',
    'attachment_path',
    'build_payload',
    'classify_attachments',
    'count_pages',
    'default_asset_cache',
    'normalize_path',
    'parse_diagnostics',
    'typst_version',
]
