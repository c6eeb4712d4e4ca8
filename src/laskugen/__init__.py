from .version import __version__ as __version__
from .barcode import (
    Barcode as Barcode,
    BarcodeBuilder as BarcodeBuilder,
    build_barcode as build_barcode,
)
from .config import Settings as Settings, configure_logging as configure_logging
from .errors import (
    BarcodeBuildError as BarcodeBuildError,
    CompileError as CompileError,
    DocumentError as DocumentError,
    InvalidEncoding as InvalidEncoding,
    MergeError as MergeError,
    SandboxFileNotFound as SandboxFileNotFound,
)
from .generation import (
    BuildResult as BuildResult,
    DocumentBuilder as DocumentBuilder,
)
from .models import (
    Address as Address,
    AttachmentInfo as AttachmentInfo,
    Invoice as Invoice,
    InvoiceAttachment as InvoiceAttachment,
    InvoiceRow as InvoiceRow,
    invoice_total as invoice_total,
)
from .service import DocumentService as DocumentService
