"""Split attachments into template-inlined files and PDFs merged after rendering."""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from ..models import AttachmentInfo, InvoiceAttachment
from .vfs import normalize_path
from .world import SandboxWorld

logger = logging.getLogger(__name__)

ATTACHMENT_DIR = '/attachments'


def attachment_path(filename: str) -> str:
    return normalize_path(f"{ATTACHMENT_DIR}/{filename}")


@dataclass
class ClassifiedAttachments:
    inlined: List[AttachmentInfo] = field(default_factory=list)
    mergeable: List[InvoiceAttachment] = field(default_factory=list)


def classify_attachments(
    world: SandboxWorld,
    attachments: Sequence[InvoiceAttachment],
    descriptions: Sequence[str] = (),
) -> Tuple[SandboxWorld, ClassifiedAttachments]:
    """Route each attachment, in submission order.

    PDFs (by extension, case-insensitive) go to the mergeable list untouched.
    Everything else is inserted into the world's VFS under
    ``/attachments/<filename>``; a repeated filename replaces the earlier file.
    Extensions are not re-validated here.
    """
    result = ClassifiedAttachments()
    for i, attachment in enumerate(attachments):
        if attachment.is_pdf:
            result.mergeable.append(attachment)
            continue
        path = attachment_path(attachment.filename)
        if world.vfs.insert(path, attachment.data):
            # last write wins in the report as well
            result.inlined = [info for info in result.inlined if info.path != path]
        description = descriptions[i] if i < len(descriptions) else None
        result.inlined.append(AttachmentInfo.for_attachment(attachment, path, description))
    logger.debug(
        "classified %d attachments: %d inlined, %d pdf",
        len(attachments),
        len(result.inlined),
        len(result.mergeable),
    )
    return world, result
