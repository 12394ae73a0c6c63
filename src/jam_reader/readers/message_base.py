"""Helpers for streaming messages out of a JAM message base."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Iterator

from lib import jam

logger = logging.getLogger(__name__)

HEADER_EXTENSION = "jhr"
TEXT_EXTENSION = "jdt"


def related_path(header_path: str | os.PathLike[str], extension: str) -> Path:
    """Return the companion file of ``header_path`` with the given ``extension``.

    ``BASE.JHR`` maps to an upper-cased extension and ``base.jhr`` keeps
    ``extension`` as given. Any other suffix is rejected.
    """

    raw = os.fspath(header_path)
    if len(raw) < 4:
        raise jam.UnsupportedExtensionError(raw)
    hint = raw[-4:]
    if hint == "." + HEADER_EXTENSION.upper():
        return Path(raw[:-3] + extension.upper())
    if hint == "." + HEADER_EXTENSION:
        return Path(raw[:-3] + extension)
    raise jam.UnsupportedExtensionError(raw)


def read_fixed_header(header_source: BinaryIO) -> jam.FixedHeaderInfo:
    """Return the fixed header summary without touching any message records."""

    return jam.decode_fixed_header(header_source)


def iter_messages(
    header_source: BinaryIO,
    data_source: BinaryIO,
    *,
    max_subfield_length: int = jam.MAX_SUBFIELD_LENGTH,
) -> Iterator[jam.Message]:
    """Yield every active message in on-disk record order.

    ``header_source`` must be positioned at the start of the fixed header.
    The first decoding or I/O error propagates and ends the sequence. The
    generator owns both sources for the duration of the pass but never closes
    them; a second pass needs freshly positioned sources.
    """

    info = jam.decode_fixed_header(header_source)
    for _ in range(info.active_messages):
        header = jam.decode_message_header(
            header_source, max_subfield_length=max_subfield_length
        )
        data_source.seek(header.text_offset)
        raw = jam.read_exact(data_source, header.text_length)
        yield jam.Message(header=header, text=jam.normalize_text(raw))


class MessageStream:
    """Iterator over messages that parks the first failure in :attr:`error`.

    Iteration stops cleanly after an error, so callers must check
    :attr:`failed` (or call :meth:`raise_for_error`) once the loop finishes.
    Calling :meth:`close` before exhaustion cancels the pass and releases
    whatever the underlying generator holds open.
    """

    def __init__(self, messages: Iterator[jam.Message]):
        self._messages = messages
        self._finished = False
        self.error: BaseException | None = None
        self.emitted = 0

    def __iter__(self) -> MessageStream:
        return self

    def __next__(self) -> jam.Message:
        if self._finished:
            raise StopIteration
        try:
            message = next(self._messages)
        except StopIteration:
            self._finished = True
            raise
        except (jam.JamError, OSError) as exc:
            self._finished = True
            self.error = exc
            logger.debug("Message stream failed after %d messages: %s", self.emitted, exc)
            raise StopIteration from exc
        self.emitted += 1
        return message

    @property
    def failed(self) -> bool:
        return self.error is not None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def close(self) -> None:
        self._finished = True
        close = getattr(self._messages, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> MessageStream:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def stream_messages(
    header_source: BinaryIO,
    data_source: BinaryIO,
    *,
    max_subfield_length: int = jam.MAX_SUBFIELD_LENGTH,
) -> MessageStream:
    """Return a :class:`MessageStream` over the messages in the given sources."""

    return MessageStream(
        iter_messages(header_source, data_source, max_subfield_length=max_subfield_length)
    )


class MessageBase:
    """A JAM message base addressed by the path of its ``.jhr`` header file."""

    def __init__(
        self,
        header_path: str | os.PathLike[str],
        *,
        max_subfield_length: int = jam.MAX_SUBFIELD_LENGTH,
    ):
        self.header_path = Path(header_path)
        self.text_path = related_path(header_path, TEXT_EXTENSION)
        self.max_subfield_length = max_subfield_length

    def __repr__(self) -> str:
        return f"MessageBase({str(self.header_path)!r})"

    def read_fixed_header(self) -> jam.FixedHeaderInfo:
        """Open the header file and decode only its fixed header."""

        with self.header_path.open("rb") as handle:
            return read_fixed_header(handle)

    def iter_messages(self) -> Iterator[jam.Message]:
        """Open both files and yield messages; handles close when the pass ends."""

        with self.header_path.open("rb") as header_handle:
            with self.text_path.open("rb") as text_handle:
                logger.debug("Reading %s with text from %s", self.header_path, self.text_path)
                yield from iter_messages(
                    header_handle,
                    text_handle,
                    max_subfield_length=self.max_subfield_length,
                )

    def stream_messages(self) -> MessageStream:
        return MessageStream(self.iter_messages())


__all__ = [
    "HEADER_EXTENSION",
    "TEXT_EXTENSION",
    "MessageBase",
    "MessageStream",
    "iter_messages",
    "read_fixed_header",
    "related_path",
    "stream_messages",
]
