"""Decoders for the JAM message base binary format (``.jhr`` / ``.jdt``)."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, BinaryIO

logger = logging.getLogger(__name__)

JAM_SIGNATURE = b"JAM\x00"
SUPPORTED_REVISION = 1

FIXED_HEADER_SIZE = 1024
MESSAGE_HEADER_SIZE = 76

# Subfield blocks are kludge lines, SEEN-BY and PATH data; anything past this is corrupt.
MAX_SUBFIELD_LENGTH = 1024 * 1024

_READ_CHUNK_SIZE = 64 * 1024

_FIXED_HEADER_STRUCT = struct.Struct("<4sIIII")
_MESSAGE_HEADER_STRUCT = struct.Struct("<4sHH17I")


class JamError(Exception):
    """Base exception for all JAM message base errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnsupportedExtensionError(JamError):
    """Raised when a header path does not end in ``.jhr`` or ``.JHR``."""

    def __init__(self, path: str):
        super().__init__(f"Header file doesn't have a suitable extension: {path}", {"path": path})
        self.path = path


class MissingSignatureError(JamError):
    """Raised when a header block does not start with ``JAM\\0``."""

    def __init__(self, found: bytes):
        super().__init__(f"Missing JAM signature (found {found!r})", {"found": found})
        self.found = found


class ShortReadError(JamError):
    """Raised when fewer bytes are available than the format declares."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Read less data than expected: wanted {expected} bytes, got {actual}",
            {"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class UnsupportedRevisionError(JamError):
    """Raised for message records whose revision is not 1."""

    def __init__(self, revision: int):
        super().__init__(f"Unknown JAM header revision: {revision}", {"revision": revision})
        self.revision = revision


class SubfieldLengthError(JamError):
    """Raised when a record declares an implausibly large subfield block."""

    def __init__(self, length: int, limit: int):
        super().__init__(
            f"Subfield block of {length} bytes exceeds the {limit} byte limit",
            {"length": length, "limit": limit},
        )
        self.length = length
        self.limit = limit


@dataclass(frozen=True)
class FixedHeaderInfo:
    """Summary of a message base taken from its 1024-byte fixed header."""

    date_created: datetime
    update_counter: int
    active_messages: int
    base_message_number: int


@dataclass(frozen=True)
class MessageHeaderSubfield:
    field_id: int
    value: bytes


@dataclass(frozen=True)
class MessageHeader:
    """Metadata for a single message record.

    Reply linkage fields hold message numbers, with ``0`` meaning "none".
    ``text_offset`` and ``text_length`` address the body in the ``.jdt`` file.
    Subfields are skipped using ``subfield_length`` and never interpreted, so
    ``subfields`` is always empty.
    """

    date_written: datetime
    date_received: datetime
    date_processed: datetime
    message_number: int
    reply_to: int
    reply_first: int
    reply_next: int
    text_offset: int
    text_length: int
    subfield_length: int = 0
    subfields: tuple[MessageHeaderSubfield, ...] = field(default=())
    revision: int = SUPPORTED_REVISION
    times_read: int = 0
    msgid_crc: int = 0
    reply_crc: int = 0
    attribute: int = 0
    attribute2: int = 0
    password_crc: int = 0
    cost: int = 0

    @property
    def subfield_count(self) -> int:
        return len(self.subfields)

    @property
    def is_reply(self) -> bool:
        return self.reply_to != 0


@dataclass(frozen=True)
class Message:
    """A decoded message header paired with its normalized body text."""

    header: MessageHeader
    text: str


def read_exact(source: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes from ``source`` or raise :class:`ShortReadError`.

    Reads in bounded chunks so a corrupt length never forces a single huge
    allocation before the shortfall is noticed.
    """

    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = source.read(min(remaining, _READ_CHUNK_SIZE))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    if remaining:
        raise ShortReadError(size, size - remaining)
    return b"".join(chunks)


def skip_exact(source: BinaryIO, size: int) -> None:
    """Consume and discard exactly ``size`` bytes from ``source``."""

    remaining = size
    while remaining > 0:
        chunk = source.read(min(remaining, _READ_CHUNK_SIZE))
        if not chunk:
            raise ShortReadError(size, size - remaining)
        remaining -= len(chunk)


def normalize_text(raw: bytes) -> str:
    """Return message body text with every carriage return turned into a newline."""

    return raw.replace(b"\r", b"\n").decode("latin-1")


def decode_fixed_header(source: BinaryIO) -> FixedHeaderInfo:
    """Decode the 1024-byte fixed header at the current position of ``source``."""

    block = read_exact(source, FIXED_HEADER_SIZE)
    signature, created, update_counter, active, _password_crc = _FIXED_HEADER_STRUCT.unpack_from(
        block, 0
    )
    if signature != JAM_SIGNATURE:
        raise MissingSignatureError(signature)
    (base_message_number,) = struct.unpack_from("<I", block, 20)

    info = FixedHeaderInfo(
        date_created=_timestamp(created),
        update_counter=update_counter,
        active_messages=active,
        base_message_number=base_message_number,
    )
    logger.debug("Decoded fixed header: %s", info)
    return info


def decode_message_header(
    source: BinaryIO,
    *,
    max_subfield_length: int = MAX_SUBFIELD_LENGTH,
) -> MessageHeader:
    """Decode one message record and skip past its subfield block.

    On success ``source`` is left positioned at the start of the next record.
    Signature and revision are validated before the subfield block is touched,
    so a failure there leaves the cursor exactly 76 bytes past the record start.
    """

    block = read_exact(source, MESSAGE_HEADER_SIZE)
    (
        signature,
        revision,
        _reserved,
        subfield_length,
        times_read,
        msgid_crc,
        reply_crc,
        reply_to,
        reply_first,
        reply_next,
        date_written,
        date_received,
        date_processed,
        message_number,
        attribute,
        attribute2,
        text_offset,
        text_length,
        password_crc,
        cost,
    ) = _MESSAGE_HEADER_STRUCT.unpack(block)

    if signature != JAM_SIGNATURE:
        raise MissingSignatureError(signature)
    if revision != SUPPORTED_REVISION:
        raise UnsupportedRevisionError(revision)
    if subfield_length > max_subfield_length:
        raise SubfieldLengthError(subfield_length, max_subfield_length)

    skip_exact(source, subfield_length)

    header = MessageHeader(
        date_written=_timestamp(date_written),
        date_received=_timestamp(date_received),
        date_processed=_timestamp(date_processed),
        message_number=message_number,
        reply_to=reply_to,
        reply_first=reply_first,
        reply_next=reply_next,
        text_offset=text_offset,
        text_length=text_length,
        subfield_length=subfield_length,
        revision=revision,
        times_read=times_read,
        msgid_crc=msgid_crc,
        reply_crc=reply_crc,
        attribute=attribute,
        attribute2=attribute2,
        password_crc=password_crc,
        cost=cost,
    )
    logger.debug(
        "Decoded message #%d (text %d+%d, %d subfield bytes)",
        message_number,
        text_offset,
        text_length,
        subfield_length,
    )
    return header


def _timestamp(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


__all__ = [
    "FIXED_HEADER_SIZE",
    "JAM_SIGNATURE",
    "MAX_SUBFIELD_LENGTH",
    "MESSAGE_HEADER_SIZE",
    "FixedHeaderInfo",
    "JamError",
    "Message",
    "MessageHeader",
    "MessageHeaderSubfield",
    "MissingSignatureError",
    "ShortReadError",
    "SubfieldLengthError",
    "UnsupportedExtensionError",
    "UnsupportedRevisionError",
    "decode_fixed_header",
    "decode_message_header",
    "normalize_text",
    "read_exact",
    "skip_exact",
]
