"""Helpers for writing exported messages into mbox files."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable

DEFAULT_SENDER = "MAILER-DAEMON"


def format_mbox_from_line(sender: str | None, timestamp: datetime) -> str:
    """Return an mbox-compatible ``From `` separator line."""

    envelope = (sender or "").strip() or DEFAULT_SENDER
    formatted = timestamp.strftime("%a %b %d %H:%M:%S %Y")
    return f"From {envelope} {formatted}\n"


def escape_from_lines(message: bytes) -> bytes:
    """Escape ``From `` lines within a message payload for mbox storage."""

    lines = message.splitlines(keepends=True)
    escaped: list[bytes] = []
    for line in lines:
        newline = b""
        content = line
        if line.endswith(b"\n"):
            content = line[:-1]
            newline = b"\n"

        if content.lstrip(b">").startswith(b"From "):
            content = b">" + content

        escaped.append(content + newline)

    return b"".join(escaped)


def ensure_mailbox_file(target: Path) -> Path:
    """Create ``target`` (and its parent directories) if it does not exist yet."""
    if target.exists() and not target.is_file():
        raise ValueError(f"mbox target is not a file: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.touch(exist_ok=True)
    return target


def append_message(
    target: Path,
    *,
    sender: str | None,
    timestamp: datetime,
    payload: bytes,
    extra_headers: Iterable[tuple[str, str]] = (),
) -> None:
    """Append a message body with the given headers to the mbox file ``target``."""

    separator = format_mbox_from_line(sender, timestamp).encode("utf-8")
    header_block = b"".join(
        f"{name}: {value}\n".encode("utf-8") for name, value in extra_headers
    )
    body = escape_from_lines(payload)
    if not body.endswith(b"\n"):
        body += b"\n"

    with target.open("ab") as handle:
        handle.write(separator)
        handle.write(header_block)
        handle.write(b"\n")
        handle.write(body)
        handle.write(b"\n")


__all__ = [
    "DEFAULT_SENDER",
    "append_message",
    "ensure_mailbox_file",
    "escape_from_lines",
    "format_mbox_from_line",
]
