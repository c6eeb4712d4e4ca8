#!/usr/bin/env python3
"""Command line interface for laskugeneraattori

Subcommands:
  build     invoice JSON (+ attachments) -> PDF
  barcode   print the payment barcode for an account and amount
  fonts     list the font catalog used for compilation
  check     verify the Typst binary is available

"""

import argparse
import datetime
import json
import pathlib
import re
import sys

from .barcode import BarcodeBuilder
from .config import Settings, configure_logging
from .errors import BarcodeBuildError, CompileError, MergeError
from .fonts import _format_size
from .generation.compiler import typst_version
from .generation.world import AssetCache
from .models import Invoice, InvoiceAttachment
from .service import DocumentService

DEFAULT_OUTPUT = 'invoice.pdf'

ALLOWED_ATTACHMENT_RE = re.compile(r'(?i)\.(jpg|jpeg|png|gif|svg|pdf)$')


def _settings(args) -> Settings:
    settings = Settings.from_env()
    return settings.with_overrides(
        typst_bin=getattr(args, 'typst_bin', None),
        font_paths=getattr(args, 'font_path', None) or None,
        ignore_system_fonts=True if getattr(args, 'ignore_system_fonts', False) else None,
    )


def _load_attachments(paths) -> list:
    attachments = []
    for p in paths or []:
        path = pathlib.Path(p)
        if not ALLOWED_ATTACHMENT_RE.search(path.name):
            print(f"ERROR: unsupported attachment type: {path.name}", file=sys.stderr)
            sys.exit(2)
        if not path.is_file():
            print(f"ERROR: attachment not found: {path}", file=sys.stderr)
            sys.exit(2)
        attachments.append(InvoiceAttachment(filename=path.name, data=path.read_bytes()))
    return attachments


def cmd_build(args):
    settings = _settings(args)
    configure_logging(settings.log_level)

    invoice_path = pathlib.Path(args.invoice)
    if not invoice_path.is_file():
        print(f"ERROR: invoice file not found: {invoice_path}", file=sys.stderr)
        sys.exit(2)
    try:
        data = json.loads(invoice_path.read_text(encoding='utf-8'))
        invoice = Invoice.from_dict(data, _load_attachments(args.attachment))
    except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
        print(f"ERROR: invalid invoice {invoice_path}: {e}", file=sys.stderr)
        sys.exit(2)

    with DocumentService(settings, max_workers=1) as service:
        try:
            result = service.build(invoice)
        except (CompileError, MergeError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            sys.exit(1)

    out_path = pathlib.Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(result.pdf)
    print(f"Built PDF: {out_path} pages={result.page_count} inlined={len(result.inlined)}")
    for info in result.inlined:
        label = f" - {info.description}" if info.description else ''
        print(f"  {info.filename} ({_format_size(info.size)}){label}")


def cmd_barcode(args):
    builder = BarcodeBuilder(args.version).account_number(args.iban).sum(args.total)
    if args.reference:
        builder.reference(args.reference)
    if args.due_date:
        try:
            builder.due_date(datetime.date.fromisoformat(args.due_date))
        except ValueError:
            print(f"ERROR: due date must be YYYY-MM-DD, got {args.due_date!r}", file=sys.stderr)
            sys.exit(2)
    try:
        print(builder.build())
    except BarcodeBuildError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_fonts(args):
    settings = _settings(args)
    book = AssetCache(settings.font_paths).book
    print("🔍 Font Catalog")
    print("=" * 40)
    for directory in book.directories:
        print(f"📂 {directory}")
    if not len(book):
        print("No font files found; Typst will use its embedded fonts")
        return
    for info in book.infos():
        line = f"  {info.index:3d}. {info.family or '?'} ({_format_size(info.size)})"
        if args.details:
            font = book.slot(info.index).get()
            status = f"✅ {font.glyph_count} glyphs" if font else "❌ unreadable"
            line += f" {status}\n       📁 {info.path}#{info.face_index}"
        print(line)
    print(f"\n📊 {len(book)} faces, {len(book.families())} families")


def cmd_check(args):
    typst_bin = _settings(args).typst_bin
    version = typst_version(typst_bin)
    if version is None:
        print(f"ERROR: Typst binary '{typst_bin}' not found or not working", file=sys.stderr)
        print("Please install Typst: https://github.com/typst/typst/releases", file=sys.stderr)
        sys.exit(1)
    print(version)


def build_parser():
    p = argparse.ArgumentParser(prog='laskugen')
    sub = p.add_subparsers(dest='command', required=True)

    b = sub.add_parser('build', help='invoice JSON -> pdf')
    b.add_argument('invoice', help='invoice JSON file')
    b.add_argument(
        '-a', '--attachment', action='append', help='attachment file (repeatable, in order)'
    )
    b.add_argument('-o', '--output', default=DEFAULT_OUTPUT)
    b.add_argument('--typst-bin')
    b.add_argument('--font-path', action='append', help='additional font directory')
    b.add_argument(
        '--ignore-system-fonts', action='store_true', help='only use configured and embedded fonts'
    )
    b.set_defaults(func=cmd_build)

    bc = sub.add_parser('barcode', help='print payment barcode')
    bc.add_argument('iban')
    bc.add_argument('total', type=int, help='amount in cents')
    bc.add_argument('--reference')
    bc.add_argument('--due-date', help='YYYY-MM-DD')
    bc.add_argument('--version', type=int, choices=[4, 5], default=4)
    bc.set_defaults(func=cmd_barcode)

    fonts = sub.add_parser('fonts', help='list font catalog')
    fonts.add_argument('--font-path', action='append', help='additional font directory')
    fonts.add_argument('--details', action='store_true', help='decode each face and show status')
    fonts.set_defaults(func=cmd_fonts)

    check = sub.add_parser('check', help='check typst binary')
    check.add_argument('--typst-bin')
    check.set_defaults(func=cmd_check)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == '__main__':
    main()
