"""Typst compilation of a sandbox world.

The world is laid out in a private temporary root and handed to the
``typst`` command line compiler. Nothing outside that root is readable by
the template. The invoice data is read from ``/data.json`` in that root;
build metadata and the date arrive through ``sys.inputs``.
"""

import datetime
import json
import logging
import pathlib
import re
import subprocess
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import CompileError
from .pdf import count_pages
from .world import DATA_KEY, World

logger = logging.getLogger(__name__)

# `--diagnostic-format short`: "path:line:col: error: message" or "error: message"
_DIAGNOSTIC_RE = re.compile(
    r'^(?:(?P<location>.+?:\d+:\d+): )?(?P<severity>error|warning)(?:\[[^\]]*\])?: (?P<message>.*)$'
)


@dataclass(frozen=True)
class CompiledDocument:
    """A paginated document produced by the engine."""

    pdf: bytes = field(repr=False)
    page_count: int
    title: Optional[str] = None
    author: Optional[str] = None
    warnings: Tuple[str, ...] = ()


def parse_diagnostics(stderr: str) -> Tuple[List[str], List[str]]:
    """Split engine output into (error messages, warning messages)."""
    errors: List[str] = []
    warnings: List[str] = []
    for line in (stderr or '').splitlines():
        m = _DIAGNOSTIC_RE.match(line.strip())
        if not m:
            continue
        message = m.group('message').strip()
        if m.group('severity') == 'error':
            errors.append(message)
        else:
            warnings.append(message)
    return errors, warnings


def _input_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(',', ':'))


def engine_inputs(world: World, utc_offset: Optional[int] = None) -> Dict[str, str]:
    """``sys.inputs`` for the template: the world scope plus today's date.

    The data value is left out; the template reads it from the data file
    written by ``World.materialize``.
    """
    inputs = {
        name: _input_value(value) for name, value in world.scope.items() if name != DATA_KEY
    }
    today = world.today(utc_offset)
    inputs['today'] = today.isoformat() if today else ''
    return inputs


def _epoch(now: datetime.datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)
    return int(now.timestamp())


def typst_version(typst_bin: str = 'typst') -> Optional[str]:
    """Version string of the Typst binary, or None when it cannot be run."""
    try:
        result = subprocess.run(
            [typst_bin, '--version'], capture_output=True, text=True, timeout=10
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


class TypstCompiler:
    def __init__(
        self,
        typst_bin: str = 'typst',
        ignore_system_fonts: bool = False,
        utc_offset: Optional[int] = None,
        extra_args: Sequence[str] = (),
    ):
        self.typst_bin = typst_bin
        self.ignore_system_fonts = ignore_system_fonts
        self.utc_offset = utc_offset
        self.extra_args = list(extra_args)

    def build_command(
        self, world: World, root: pathlib.Path, main: pathlib.Path, output: pathlib.Path
    ) -> List[str]:
        cmd = [
            self.typst_bin,
            'compile',
            '--root',
            str(root),
            '--diagnostic-format',
            'short',
            '--creation-timestamp',
            str(_epoch(world.now)),
        ]
        for font_path in world.font_directories():
            cmd.extend(['--font-path', font_path])
        if self.ignore_system_fonts:
            cmd.append('--ignore-system-fonts')
        for name, value in engine_inputs(world, self.utc_offset).items():
            cmd.extend(['--input', f"{name}={value}"])
        cmd.extend(self.extra_args)
        cmd.extend([str(main), str(output)])
        return cmd

    def compile(self, world: World) -> CompiledDocument:
        """Compile the world's main template.

        Raises CompileError with every error diagnostic joined by newlines;
        there is no partial result.
        """
        with tempfile.TemporaryDirectory(prefix='laskugen_') as td:
            root = pathlib.Path(td) / 'root'
            root.mkdir()
            try:
                main = world.materialize(root)
            except OSError as e:
                raise CompileError([f"cannot lay out sandbox files: {e}"]) from e
            output = pathlib.Path(td) / 'document.pdf'
            cmd = self.build_command(world, root, main, output)
            logger.debug("running %s compile for %s", self.typst_bin, world.main())

            try:
                res = subprocess.run(
                    cmd, capture_output=True, text=True, encoding='utf-8', errors='replace'
                )
            except FileNotFoundError:
                raise CompileError([f"typst binary not found at '{self.typst_bin}'"]) from None
            except OSError as e:
                raise CompileError([f"cannot run typst at '{self.typst_bin}': {e}"]) from e

            errors, warnings = parse_diagnostics(res.stderr)
            for warning in warnings:
                logger.warning("typst: %s", warning)
            if res.returncode != 0:
                if not errors:
                    errors = [res.stderr.strip() or f"typst exited with status {res.returncode}"]
                raise CompileError(errors)
            if not output.exists():
                raise CompileError(['typst reported success but produced no PDF'])
            pdf = output.read_bytes()

        data = world.scope.get(DATA_KEY)
        data = data if isinstance(data, dict) else {}
        return CompiledDocument(
            pdf=pdf,
            page_count=count_pages(pdf),
            title=data.get('subject') or None,
            author=data.get('recipient_name') or None,
            warnings=tuple(warnings),
        )
