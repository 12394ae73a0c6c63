"""Workflow for exporting a JAM message base into an mbox file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from email.utils import format_datetime
from pathlib import Path

from tqdm import tqdm

from lib import jam
from jam_reader.readers import message_base
from jam_reader.writers import mbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportStats:
    """Summary information produced by an export run."""

    header_path: Path
    target: Path
    active_messages: int
    exported_messages: int
    exported_bytes: int
    dry_run: bool


def export_base(
    header_path: Path,
    target: Path,
    *,
    dry_run: bool = False,
    show_progress: bool = False,
) -> ExportStats:
    """Append every message in the base at ``header_path`` to the mbox ``target``.

    The export is fail-fast: a decoding error stops it and propagates, leaving
    the messages already appended in place.
    """

    if not header_path.exists():
        raise FileNotFoundError(f"Message base not found: {header_path}")

    base = message_base.MessageBase(header_path)
    info = base.read_fixed_header()

    if not dry_run:
        mbox.ensure_mailbox_file(target)

    progress = None
    if show_progress and info.active_messages:
        progress = tqdm(total=info.active_messages, desc="Exporting Messages", unit="msg")

    exported = 0
    exported_bytes = 0
    try:
        for message in base.iter_messages():
            payload = message.text.encode("latin-1")
            if not dry_run:
                mbox.append_message(
                    target,
                    sender=None,
                    timestamp=message.header.date_written,
                    payload=payload,
                    extra_headers=_message_headers(message.header),
                )
            exported += 1
            exported_bytes += len(payload)
            if progress:
                progress.update(1)
    finally:
        if progress:
            progress.close()

    logger.debug("Exported %d of %d messages from %s", exported, info.active_messages, base)

    return ExportStats(
        header_path=header_path,
        target=target,
        active_messages=info.active_messages,
        exported_messages=exported,
        exported_bytes=exported_bytes,
        dry_run=dry_run,
    )


def _message_headers(header: jam.MessageHeader) -> list[tuple[str, str]]:
    headers = [
        ("Date", format_datetime(header.date_written)),
        ("X-JAM-Message-Number", str(header.message_number)),
    ]
    if header.is_reply:
        headers.append(("X-JAM-Reply-To", str(header.reply_to)))
    return headers


__all__ = ["ExportStats", "export_base"]
