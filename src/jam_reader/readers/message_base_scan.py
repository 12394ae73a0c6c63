"""Discovery and validation utilities for directories of JAM message bases."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from tqdm import tqdm

from lib import jam
from jam_reader.readers import message_base

logger = logging.getLogger(__name__)

_HEADER_SUFFIXES = {".jhr", ".JHR"}


@dataclass(frozen=True)
class BaseSummary:
    """A message base found on disk and its decoded fixed header, if readable."""

    display_path: str
    header_path: Path
    info: jam.FixedHeaderInfo | None
    error: str | None = None

    @property
    def active_messages(self) -> int:
        return self.info.active_messages if self.info else 0


@dataclass(frozen=True)
class BaseFailure:
    """A message base whose message stream ended with an error."""

    display_path: str
    messages_read: int
    error_type: str
    error_message: str


@dataclass(frozen=True)
class BaseScanReport:
    """Aggregate results from streaming every message base under a root."""

    total_bases: int
    total_active_messages: int
    total_read_messages: int
    failures: list[BaseFailure]


def discover_bases(root: Path) -> Iterable[Path]:
    """Yield JAM header files beneath ``root`` (or ``root`` itself)."""
    if not root.exists():
        raise FileNotFoundError(f"Message base root not found: {root}")

    if root.is_file():
        if root.suffix in _HEADER_SUFFIXES:
            yield root
        return

    for path in sorted(root.rglob("*")):
        if path.is_file() and path.suffix in _HEADER_SUFFIXES:
            yield path


def summarize_bases(root: Path) -> list[BaseSummary]:
    """Return a summary for every message base found beneath ``root``."""
    summaries: list[BaseSummary] = []
    for header_path in discover_bases(root):
        display_path = _relative_base_name(header_path, root)
        try:
            info = message_base.MessageBase(header_path).read_fixed_header()
        except (jam.JamError, OSError) as exc:
            logger.warning("Unreadable message base %s: %s", header_path, exc)
            summaries.append(
                BaseSummary(
                    display_path=display_path,
                    header_path=header_path,
                    info=None,
                    error=str(exc),
                )
            )
            continue
        summaries.append(BaseSummary(display_path=display_path, header_path=header_path, info=info))
    summaries.sort(key=lambda item: item.display_path.lower())
    return summaries


def scan_bases(
    root: Path,
    *,
    show_progress: bool = True,
    prefix: str | None = None,
) -> BaseScanReport:
    """Stream every message of every base under ``root`` and record failures."""

    summaries = summarize_bases(root)
    if prefix:
        summaries = [s for s in summaries if s.display_path.startswith(prefix)]

    total_active = sum(summary.active_messages for summary in summaries)
    progress = tqdm(
        total=total_active,
        disable=not show_progress,
        unit="msg",
        desc="Scanning Bases",
    )

    failures: list[BaseFailure] = []
    total_read = 0

    for summary in summaries:
        progress.set_postfix_str(summary.display_path, refresh=False)
        if summary.info is None:
            failures.append(
                BaseFailure(
                    display_path=summary.display_path,
                    messages_read=0,
                    error_type="FixedHeader",
                    error_message=summary.error or "",
                )
            )
            continue

        with message_base.MessageBase(summary.header_path).stream_messages() as stream:
            for _message in stream:
                total_read += 1
                progress.update(1)

        if stream.error is not None:
            logger.warning("Message base %s failed: %s", summary.display_path, stream.error)
            progress.update(max(summary.active_messages - stream.emitted, 0))
            failures.append(
                BaseFailure(
                    display_path=summary.display_path,
                    messages_read=stream.emitted,
                    error_type=type(stream.error).__name__,
                    error_message=str(stream.error),
                )
            )

    progress.close()

    return BaseScanReport(
        total_bases=len(summaries),
        total_active_messages=total_active,
        total_read_messages=total_read,
        failures=failures,
    )


def write_report(path: Path, report: BaseScanReport, root: Path) -> None:
    """Serialize ``report`` to ``path`` in JSON format."""

    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "root": str(root),
        "summary": {
            "total_bases": report.total_bases,
            "total_active_messages": report.total_active_messages,
            "total_read_messages": report.total_read_messages,
            "failed_bases": len(report.failures),
        },
        "failures": [
            {
                "path": failure.display_path,
                "messages_read": failure.messages_read,
                "error_type": failure.error_type,
                "error": failure.error_message,
            }
            for failure in report.failures
        ],
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2))


def _relative_base_name(header_path: Path, root: Path) -> str:
    base = root.parent if root.is_file() else root
    relative = header_path.relative_to(base)
    return relative.with_suffix("").as_posix()


__all__ = [
    "BaseFailure",
    "BaseScanReport",
    "BaseSummary",
    "discover_bases",
    "scan_bases",
    "summarize_bases",
    "write_report",
]
