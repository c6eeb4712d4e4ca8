"""Error taxonomy of the document generation pipeline.

Only BarcodeBuildError is recovered inside the pipeline; every other error
aborts the current build and reaches the caller unchanged.
"""

from typing import Iterable, List, Optional


class DocumentError(Exception):
    """Base class for all pipeline errors."""


class SandboxFileNotFound(DocumentError):
    """A virtual path was requested that the sandbox does not contain."""

    def __init__(self, path: str):
        super().__init__(f"file not found in sandbox: {path}")
        self.path = path


class InvalidEncoding(DocumentError):
    """A textual asset is not valid UTF-8."""

    def __init__(self, path: str):
        super().__init__(f"file is not valid utf-8: {path}")
        self.path = path


class BarcodeBuildError(DocumentError):
    """The payment barcode could not be built from the given account and amount."""


class CompileError(DocumentError):
    """The template engine rejected the document.

    ``str(error)`` is every diagnostic message joined with newlines.
    """

    def __init__(self, diagnostics: Iterable[str]):
        self.diagnostics: List[str] = [d for d in diagnostics if d]
        if not self.diagnostics:
            self.diagnostics = ['typst compilation failed']
        super().__init__('\n'.join(self.diagnostics))


class MergeError(DocumentError):
    """One of the PDF inputs could not be read or appended."""

    def __init__(self, name: str, reason: str, index: Optional[int] = None):
        super().__init__(f"failed to merge '{name}': {reason}")
        self.name = name
        self.reason = reason
        self.index = index
