"""Turn one reconstructed logical line into exactly one typed GC event.

Grammar of a logical line::

    [datestamp: ]timestamp: [TYPE
        marker      -> "]"
        pause_pair  -> "<elapsed>/<duration> secs]"
        collection  -> {nested detail}* memory [nested detail] , pause secs]

A nested detail is ``[timestamp: ][TYPE memory[, pause secs]]``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TypeVar

from .errors import ParseError
from .model import CollectionEvent, ConcurrentMarker, ConcurrentPhase, GCEvent
from .scanner import (
    ParsePosition,
    ScanFailure,
    has_next_detail,
    next_char_is_bracket,
    scan_datestamp,
    scan_memory,
    scan_pause,
    scan_pause_pair,
    scan_timestamp,
    scan_type,
    skip_separators,
    skip_until_end_of_detail,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _require(result: T | ScanFailure, line: str, pos: ParsePosition) -> T:
    """Unwrap a scan result or fail the whole logical line."""
    if isinstance(result, ScanFailure):
        raise ParseError(
            result.message,
            line,
            index=result.index,
            line_number=pos.line_number,
            outcome=result.outcome,
        )
    return result


def _scan_detail(line: str, pos: ParsePosition, parent_uptime: float) -> CollectionEvent | ScanFailure:
    """Scan one nested detail event such as ``1.234: [ParNew: 1K->2K(3K), 0.01 secs]``."""
    skip_separators(line, pos)
    datestamp = scan_datestamp(line, pos)
    if isinstance(datestamp, ScanFailure):
        return datestamp

    if next_char_is_bracket(line, pos):
        uptime = parent_uptime
    else:
        uptime = scan_timestamp(line, pos)
        if isinstance(uptime, ScanFailure):
            return uptime

    gc_type = scan_type(line, pos)
    if isinstance(gc_type, ScanFailure):
        return gc_type

    heap = scan_memory(line, pos)
    if isinstance(heap, ScanFailure):
        return heap

    return CollectionEvent.build(
        datestamp=datestamp,
        uptime_seconds=uptime,
        gc_type=gc_type,
        heap=heap,
        pause_seconds=scan_pause(line, pos),
    )


def _scan_details(line: str, pos: ParsePosition, parent_uptime: float) -> list[CollectionEvent]:
    """Collect nested details until none follows or the cursor stops moving."""
    details: list[CollectionEvent] = []
    current_index = pos.index
    index_has_changed = True
    while index_has_changed and has_next_detail(line, pos):
        detail = _scan_detail(line, pos, parent_uptime)
        if isinstance(detail, ScanFailure):
            if not detail.recoverable:
                _require(detail, line, pos)
            logger.debug("Skipping detail event because of %s", detail.message)
            skip_until_end_of_detail(line, pos)
        else:
            details.append(detail)

        # garbage must not keep the loop spinning in place
        index_has_changed = current_index != pos.index
        current_index = pos.index
    return details


def _parse_event(line: str, pos: ParsePosition) -> GCEvent:
    datestamp: datetime | None = _require(scan_datestamp(line, pos), line, pos)
    uptime = _require(scan_timestamp(line, pos), line, pos)
    gc_type = _require(scan_type(line, pos), line, pos)

    if gc_type.is_concurrent:
        if gc_type.pattern == "marker":
            return ConcurrentMarker(datestamp=datestamp, uptime_seconds=uptime, gc_type=gc_type)
        elapsed, duration = _require(scan_pause_pair(line, pos), line, pos)
        return ConcurrentPhase(
            datestamp=datestamp,
            uptime_seconds=uptime,
            gc_type=gc_type,
            elapsed_seconds=elapsed,
            duration_seconds=duration,
        )

    details = _scan_details(line, pos, uptime)
    heap = _require(scan_memory(line, pos), line, pos)
    pause = scan_pause(line, pos)
    if pause is None:
        # e.g. "..., [CMS Perm : 10K->10K(20K)], 0.05 secs]"
        if has_next_detail(line, pos):
            details.append(_require(_scan_detail(line, pos, uptime), line, pos))
        pause = scan_pause(line, pos)
        if pause is None:
            _require(
                ScanFailure(
                    outcome="malformed_number",
                    message=f"expected pause at position {pos.index}",
                    index=pos.index,
                ),
                line,
                pos,
            )

    return CollectionEvent.build(
        datestamp=datestamp,
        uptime_seconds=uptime,
        gc_type=gc_type,
        heap=heap,
        pause_seconds=pause,
        details=details,
    )


def parse_line(line: str, pos: ParsePosition) -> GCEvent:
    """Parse one logical line starting at ``pos.index``.

    Raises ``ParseError`` carrying the line and cursor position when the line
    cannot be turned into an event.
    """
    try:
        return _parse_event(line, pos)
    except ParseError:
        raise
    except (ValueError, IndexError, ArithmeticError) as e:
        raise ParseError(
            f"Error parsing entry ({e!r})", line, index=pos.index, line_number=pos.line_number
        ) from e
