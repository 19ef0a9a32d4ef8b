"""Command-line interface for docconvert.

Usage:
    docconvert convert report.pdf --to txt
    docconvert convert notes.odt --to pdf --server --server-url http://localhost:8000
    docconvert convert scan.pdf --to docx --preserve-layout -o scan.docx
    docconvert health [--local]
    docconvert formats [--source pdf]
    docconvert serve [--host 0.0.0.0] [--port 8000]
"""

import argparse
import asyncio
import getpass
import json
import sys
from pathlib import Path
from typing import List, Optional

from .config import (
    FORMAT_ORDER,
    get_format,
    resolve_target,
    target_choices,
)
from .utils.conversion_core import (
    ConversionDispatcher,
    ConversionOptions,
    SourceDocument,
)
from .utils.error_handling import ConversionError
from .utils.http_client import lifespan_http_clients
from .utils.logging_config import get_logger, setup_logging
from .utils.mime_detector import detect_format_from_content
from .utils.server_bridge import ServerBridge

logger = get_logger(__name__)


def prompt_password(prompt: str) -> Optional[str]:
    try:
        return getpass.getpass(f"{prompt} ")
    except (EOFError, KeyboardInterrupt):
        return None


async def _run_conversion(args: argparse.Namespace, document: SourceDocument, source, target):
    bridge = ServerBridge(args.server_url) if args.server else None
    dispatcher = ConversionDispatcher(bridge=bridge)
    options = ConversionOptions(use_server=args.server, preserve_layout=args.preserve_layout)

    async with lifespan_http_clients():
        if args.server:
            status = await dispatcher.refresh_health()
            if not status.available:
                print(f"Server health: {status.message}", file=sys.stderr)
        return await dispatcher.convert(document, source, target, options,
                                        password_provider=prompt_password)


def cmd_convert(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    data = input_path.read_bytes()

    document = SourceDocument(data=data, filename=input_path.name)
    if args.source:
        source = get_format(args.source)
    else:
        source = document.inferred_format or detect_format_from_content(data)
    if source is None:
        print(f"Error: cannot tell the format of {input_path.name}; pass --from", file=sys.stderr)
        return 2

    requested = get_format(args.target) if args.target else None
    target = resolve_target(source, requested)
    if requested is not None and requested is not target:
        print(f"Target matches the source format; converting to {target.label} instead",
              file=sys.stderr)

    try:
        artifact = asyncio.run(_run_conversion(args, document, source, target))
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output_path = Path(args.output) if args.output else input_path.with_name(artifact.filename)
    output_path.write_bytes(artifact.content)
    print(f"Wrote {output_path} ({artifact.mime_type}, {len(artifact.content)} bytes)")
    return 0


def cmd_health(args: argparse.Namespace) -> int:
    if args.local:
        from .utils.office_suite import probe_office_suite

        status = probe_office_suite()
    else:
        async def _check():
            async with lifespan_http_clients():
                return await ServerBridge(args.server_url).health()

        status = asyncio.run(_check())

    print(json.dumps(status.to_dict(), indent=2))
    return 0 if status.available else 1


def cmd_formats(args: argparse.Namespace) -> int:
    formats = target_choices(get_format(args.source)) if args.source else FORMAT_ORDER
    for fmt in formats:
        print(f"{fmt.key:<5} {fmt.extension:<6} {fmt.mime_type:<72} {fmt.label}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("docconvert.app:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docconvert",
                                     description="Convert documents between PDF, DOCX, TXT, RTF and ODT")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    sub = parser.add_subparsers(dest="command", required=True)

    # convert
    p_convert = sub.add_parser("convert", help="Convert a document")
    p_convert.add_argument("input", help="File to convert")
    p_convert.add_argument("--to", dest="target", help="Target format (default: PDF, or DOCX for PDF input)")
    p_convert.add_argument("--from", dest="source", help="Source format (default: from the file name)")
    p_convert.add_argument("--server", action="store_true", help="Convert on the docconvert server")
    p_convert.add_argument("--server-url", default=None, help="Server URL (default: DOCCONVERT_SERVER_URL)")
    p_convert.add_argument("--preserve-layout", action="store_true",
                           help="PDF to DOCX as page images instead of text")
    p_convert.add_argument("-o", "--output", help="Output path (default: converted-<name>.<ext>)")
    p_convert.set_defaults(func=cmd_convert)

    # health
    p_health = sub.add_parser("health", help="Check server conversion availability")
    p_health.add_argument("--server-url", default=None, help="Server URL (default: DOCCONVERT_SERVER_URL)")
    p_health.add_argument("--local", action="store_true", help="Probe the local LibreOffice instead")
    p_health.set_defaults(func=cmd_health)

    # formats
    p_formats = sub.add_parser("formats", help="List supported formats")
    p_formats.add_argument("--source", help="Only list targets available for this source")
    p_formats.set_defaults(func=cmd_formats)

    # serve
    p_serve = sub.add_parser("serve", help="Run the conversion service")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.log_level:
        setup_logging(level=args.log_level)

    try:
        return args.func(args)
    except FileNotFoundError as e:
        print(f"Error: file not found: {e.filename}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
