"""Run document builds on a bounded worker pool.

Compilation is CPU heavy, so builds never run on the caller's thread or
event loop. A cancelled caller does not stop a build that already started;
it runs to completion and its result is discarded.
"""

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Sequence

from .config import Settings
from .generation.core import BuildResult, DocumentBuilder
from .generation.world import AssetCache, default_asset_cache
from .models import Invoice, InvoiceAttachment

logger = logging.getLogger(__name__)


class DocumentService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        cache: Optional[AssetCache] = None,
        compiler=None,
        max_workers: Optional[int] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.cache = cache or default_asset_cache(
            self.settings.font_paths, self.settings.template_path
        )
        self.compiler = compiler
        workers = max_workers or self.settings.max_workers
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix='laskugen-pdf')
        logger.debug("document service started with %d workers", workers)

    def _build(
        self, invoice: Invoice, attachments: Optional[Sequence[InvoiceAttachment]]
    ) -> BuildResult:
        builder = DocumentBuilder(
            invoice,
            attachments,
            cache=self.cache,
            compiler=self.compiler,
            settings=self.settings,
        )
        return builder.build()

    def submit(
        self, invoice: Invoice, attachments: Optional[Sequence[InvoiceAttachment]] = None
    ) -> 'Future[BuildResult]':
        return self._executor.submit(self._build, invoice, attachments)

    async def generate(
        self, invoice: Invoice, attachments: Optional[Sequence[InvoiceAttachment]] = None
    ) -> BuildResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._build, invoice, attachments)

    def build(
        self, invoice: Invoice, attachments: Optional[Sequence[InvoiceAttachment]] = None
    ) -> BuildResult:
        return self.submit(invoice, attachments).result()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> 'DocumentService':
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
