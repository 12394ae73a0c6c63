"""Command-line interface for the JAM message base reader."""

from __future__ import annotations

import argparse
import itertools
import logging
import sys
from pathlib import Path
from typing import Callable

from lib import jam
from jam_reader import export
from jam_reader.readers import message_base, message_base_scan


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jam-reader",
        description="Inspect, validate and export JAM message bases.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Increase logging verbosity for troubleshooting.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    info_parser = subparsers.add_parser(
        "info",
        help="Show the fixed header summary of a message base.",
    )
    info_parser.add_argument(
        "header_path",
        type=Path,
        help="Path to the message base header file (*.jhr).",
    )
    info_parser.set_defaults(handler=_handle_info)

    list_messages_parser = subparsers.add_parser(
        "list-messages",
        help="List message numbers, dates and reply linkage in a message base.",
    )
    list_messages_parser.add_argument(
        "header_path",
        type=Path,
        help="Path to the message base header file (*.jhr).",
    )
    list_messages_parser.add_argument(
        "--limit",
        type=int,
        help="Stop after listing this many messages.",
    )
    list_messages_parser.set_defaults(handler=_handle_list_messages)

    show_parser = subparsers.add_parser(
        "show",
        help="Print message texts from a message base.",
    )
    show_parser.add_argument(
        "header_path",
        type=Path,
        help="Path to the message base header file (*.jhr).",
    )
    show_parser.add_argument(
        "--number",
        type=int,
        help="Only print the message with this message number.",
    )
    show_parser.set_defaults(handler=_handle_show)

    list_bases_parser = subparsers.add_parser(
        "list-bases",
        help="List message bases beneath a directory and show message counts.",
    )
    list_bases_parser.add_argument(
        "root",
        type=Path,
        help="Directory containing message bases, or a single header file.",
    )
    list_bases_parser.set_defaults(handler=_handle_list_bases)

    scan_parser = subparsers.add_parser(
        "scan",
        help="Read every message of every base beneath a directory and report failures.",
    )
    scan_parser.add_argument(
        "root",
        type=Path,
        help="Directory containing message bases, or a single header file.",
    )
    scan_parser.add_argument(
        "--report",
        type=Path,
        help="Optional path to write a JSON report describing failed bases.",
    )
    scan_parser.add_argument(
        "--prefix",
        help="Only scan bases whose path starts with the provided prefix (case-sensitive).",
    )
    scan_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar output during the scan.",
    )
    scan_parser.set_defaults(handler=_handle_scan)

    export_parser = subparsers.add_parser(
        "export",
        help="Export the messages of a base into an mbox file.",
    )
    export_parser.add_argument(
        "header_path",
        type=Path,
        help="Path to the message base header file (*.jhr).",
    )
    export_parser.add_argument(
        "target",
        type=Path,
        help="Path of the mbox file to append messages to.",
    )
    export_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Read and validate every message without writing the mbox file.",
    )
    export_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bar output during the export.",
    )
    export_parser.set_defaults(handler=_handle_export)

    return parser


Handler = Callable[[argparse.Namespace], int]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in ("info", "list-messages", "show", "export"):
        args.header_path = args.header_path.resolve()
        try:
            message_base.related_path(args.header_path, message_base.TEXT_EXTENSION)
        except jam.UnsupportedExtensionError as exc:
            parser.error(exc.message)
        if args.command == "export":
            args.target = args.target.resolve()
    elif args.command in ("list-bases", "scan"):
        args.root = args.root.resolve()
        if args.command == "scan" and args.report is not None:
            args.report = args.report.resolve()
    else:  # pragma: no cover
        parser.error("Unsupported command")

    if getattr(args, "limit", None) is not None and args.limit < 0:
        parser.error("--limit must not be negative")

    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    handler: Handler = args.handler
    return handler(args)


def _handle_info(args: argparse.Namespace) -> int:
    base = message_base.MessageBase(args.header_path)
    info = base.read_fixed_header()

    print(f"Message base {base.header_path}:")
    print(f"  Text file:        {base.text_path}")
    print(f"  Created:          {info.date_created.isoformat()}")
    print(f"  Update counter:   {info.update_counter}")
    print(f"  Active messages:  {info.active_messages}")
    print(f"  Base message no.: {info.base_message_number}")
    return 0


def _handle_list_messages(args: argparse.Namespace) -> int:
    base = message_base.MessageBase(args.header_path)
    header = f"  {'Number':>6}  {'Written':<19}  {'ReplyTo':>7}  {'Length':>7}"
    print(f"Messages in {base.header_path}:")
    print(header)
    print("  " + "-" * (len(header) - 2))

    with base.stream_messages() as stream:
        for message in itertools.islice(stream, args.limit):
            fields = message.header
            written = fields.date_written.strftime("%Y-%m-%d %H:%M:%S")
            print(
                f"  {fields.message_number:6d}  {written:<19}  "
                f"{fields.reply_to:7d}  {fields.text_length:7d}"
            )

    return _report_stream_error(stream)


def _handle_show(args: argparse.Namespace) -> int:
    base = message_base.MessageBase(args.header_path)
    found = False

    with base.stream_messages() as stream:
        for message in stream:
            if args.number is not None and message.header.message_number != args.number:
                continue
            found = True
            print(f"--- Message {message.header.message_number} ---")
            print(message.text.rstrip("\n"))
            if args.number is not None:
                break

    status = _report_stream_error(stream)
    if status == 0 and args.number is not None and not found:
        print(f"Message {args.number} not found in {base.header_path}", file=sys.stderr)
        return 1
    return status


def _handle_list_bases(args: argparse.Namespace) -> int:
    root: Path = args.root
    summaries = message_base_scan.summarize_bases(root)
    if not summaries:
        print(f"No message bases found in {root}")
        return 0

    name_width = max(len(summary.display_path) for summary in summaries)
    print(f"Message bases discovered in {root}:")
    header = f"  {'Name'.ljust(name_width)}  {'Active':>6}  {'Base':>6}  {'Updates':>7}"
    print(header)
    print("  " + "-" * (len(header) - 2))
    for summary in summaries:
        name = summary.display_path.ljust(name_width)
        if summary.info is None:
            print(f"  {name}  unreadable: {summary.error}")
            continue
        info = summary.info
        print(
            f"  {name}  {info.active_messages:6d}  {info.base_message_number:6d}  "
            f"{info.update_counter:7d}"
        )
    return 0


def _handle_scan(args: argparse.Namespace) -> int:
    report = message_base_scan.scan_bases(
        args.root,
        show_progress=not args.no_progress,
        prefix=args.prefix,
    )

    print(
        "Scan complete: "
        f"{report.total_read_messages} of {report.total_active_messages} messages read "
        f"across {report.total_bases} bases."
    )
    if report.failures:
        name_width = max(len(failure.display_path) for failure in report.failures)
        print("Bases with errors:")
        header = f"  {'Name'.ljust(name_width)}  {'Read':>6}  Error"
        print(header)
        print("  " + "-" * (len(header) - 2))
        for failure in report.failures:
            name = failure.display_path.ljust(name_width)
            print(
                f"  {name}  {failure.messages_read:6d}  "
                f"{failure.error_type}: {failure.error_message}"
            )
    else:
        print("No errors detected.")

    if args.report is not None:
        message_base_scan.write_report(args.report, report, args.root)
        print(f"Report written to {args.report}")

    return 1 if report.failures else 0


def _handle_export(args: argparse.Namespace) -> int:
    stats = export.export_base(
        args.header_path,
        args.target,
        dry_run=args.dry_run,
        show_progress=not args.no_progress,
    )

    outcome = "Dry run" if stats.dry_run else "Export"
    print(
        f"{outcome} complete: {stats.exported_messages} of {stats.active_messages} messages "
        f"({stats.exported_bytes} bytes) from {stats.header_path.name}."
    )
    if not stats.dry_run:
        print(f"Messages appended to {stats.target}")
    return 0


def _report_stream_error(stream: message_base.MessageStream) -> int:
    if stream.error is None:
        return 0
    print(
        f"Error after {stream.emitted} messages: {type(stream.error).__name__}: {stream.error}",
        file=sys.stderr,
    )
    return 1


if __name__ == "__main__":  # pragma: no cover - manual execution entry point
    raise SystemExit(main())
