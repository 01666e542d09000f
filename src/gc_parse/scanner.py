"""Cursor-based token scanner for Sun / Oracle GC log lines.

Every ``scan_*`` function reads from ``line`` starting at ``pos.index``.
On success it advances the cursor and returns the value; on failure it
leaves the cursor where it was and returns a ``ScanFailure`` so the caller
can decide between skipping a nested detail and failing the whole line.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict

from .model import Concurrency, GCPattern, GCType, Generation, HeapUsage

# ============================================================
# CURSOR AND SCAN OUTCOMES
# ============================================================

ScanOutcome: TypeAlias = Literal["unknown_type", "malformed_number", "unexpected_token"]

# Failures a nested detail may recover from by skipping to its closing bracket
RECOVERABLE_OUTCOMES: frozenset[str] = frozenset({"unknown_type", "malformed_number"})


@dataclass
class ParsePosition:
    """Mutable offset into the current logical line."""

    index: int = 0
    line_number: int = 0


class ScanFailure(BaseModel):
    """Explicit failure value returned by a scan call."""

    model_config = ConfigDict(frozen=True)

    outcome: ScanOutcome
    message: str
    index: int

    @property
    def recoverable(self) -> bool:
        return self.outcome in RECOVERABLE_OUTCOMES


# ============================================================
# TYPE TABLE
# ============================================================

_TYPE_DEFINITIONS: tuple[tuple[str, Generation, Concurrency, GCPattern], ...] = (
    # whole collections
    ("GC", "young", "ordinary", "memory_pause"),
    ("GC--", "young", "ordinary", "memory_pause"),
    ("Full GC", "all", "ordinary", "memory_pause"),
    ("Full GC--", "all", "ordinary", "memory_pause"),
    ("Full GC (System)", "all", "ordinary", "memory_pause"),
    # young generation (-XX:+UseSerialGC, -XX:+UseParallelGC, -XX:+UseParNewGC)
    ("DefNew", "young", "ordinary", "memory_pause"),
    ("DefNew (promotion failed)", "young", "ordinary", "memory_pause"),
    ("ParNew", "young", "ordinary", "memory_pause"),
    ("ParNew (promotion failed)", "young", "ordinary", "memory_pause"),
    ("ASParNew", "young", "ordinary", "memory_pause"),
    ("ASParNew (promotion failed)", "young", "ordinary", "memory_pause"),
    ("PSYoungGen", "young", "ordinary", "memory_pause"),
    # tenured generation
    ("Tenured", "tenured", "ordinary", "memory_pause"),
    ("PSOldGen", "tenured", "ordinary", "memory_pause"),
    ("ParOldGen", "tenured", "ordinary", "memory_pause"),
    ("CMS", "tenured", "ordinary", "memory_pause"),
    ("ASCMS", "tenured", "ordinary", "memory_pause"),
    ("CMS (concurrent mode failure)", "tenured", "ordinary", "memory_pause"),
    ("CMS (concurrent mode interrupted)", "tenured", "ordinary", "memory_pause"),
    ("ASCMS (concurrent mode failure)", "tenured", "ordinary", "memory_pause"),
    ("1 CMS-initial-mark", "tenured", "ordinary", "memory_pause"),
    ("1 CMS-remark", "tenured", "ordinary", "memory_pause"),
    # permanent generation / metaspace
    ("Perm", "perm", "ordinary", "memory_pause"),
    ("PSPermGen", "perm", "ordinary", "memory_pause"),
    ("CMS Perm", "perm", "ordinary", "memory_pause"),
    ("Metaspace", "perm", "ordinary", "memory_pause"),
    # concurrent phases of -XX:+UseConcMarkSweepGC
    ("CMS-concurrent-mark-start", "tenured", "concurrent", "marker"),
    ("CMS-concurrent-mark", "tenured", "concurrent", "pause_pair"),
    ("CMS-concurrent-preclean-start", "tenured", "concurrent", "marker"),
    ("CMS-concurrent-preclean", "tenured", "concurrent", "pause_pair"),
    ("CMS-concurrent-abortable-preclean-start", "tenured", "concurrent", "marker"),
    ("CMS-concurrent-abortable-preclean", "tenured", "concurrent", "pause_pair"),
    ("CMS-concurrent-sweep-start", "tenured", "concurrent", "marker"),
    ("CMS-concurrent-sweep", "tenured", "concurrent", "pause_pair"),
    ("CMS-concurrent-reset-start", "tenured", "concurrent", "marker"),
    ("CMS-concurrent-reset", "tenured", "concurrent", "pause_pair"),
)

_WHITESPACE_PATTERN: re.Pattern[str] = re.compile(r"\s+")


def normalize_type_name(name: str) -> str:
    """Collapse blanks so ``ParNew(promotion failed)`` equals ``ParNew (promotion failed)``."""
    return _WHITESPACE_PATTERN.sub(" ", name).replace(" (", "(").strip()


TYPE_TABLE: MappingProxyType[str, GCType] = MappingProxyType(
    {
        normalize_type_name(name): GCType(
            name=name, generation=generation, concurrency=concurrency, pattern=pattern
        )
        for name, generation, concurrency, pattern in _TYPE_DEFINITIONS
    }
)


def lookup_type(name: str) -> GCType | None:
    """Return the type for a tag, falling back to the base tag of a GC cause suffix."""
    key = normalize_type_name(name)
    if gc_type := TYPE_TABLE.get(key):
        return gc_type
    # e.g. "GC (Allocation Failure)" -> "GC"
    if "(" in key:
        return TYPE_TABLE.get(key[: key.index("(")])
    return None


# ============================================================
# TOKEN PATTERNS
# ============================================================

DATESTAMP_PATTERN: re.Pattern[str] = re.compile(
    r"\s*(?P<datestamp>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:[.,]\d+)?[+-]\d{2}:?\d{2}):\s*"
)
TIMESTAMP_PATTERN: re.Pattern[str] = re.compile(r"\s*(?P<timestamp>\d+(?:[.,]\d+)?):\s*")
MEMORY_PATTERN: re.Pattern[str] = re.compile(
    r"\s*(?:(?P<before>\d+(?:\.\d+)?[BKMG])->)?"
    r"(?P<after>\d+(?:\.\d+)?[BKMG])"
    r"(?:\((?P<total>\d+(?:\.\d+)?[BKMG])\))?"
)
PAUSE_PATTERN: re.Pattern[str] = re.compile(
    r"\s*,\s*(?P<pause>\d+(?:[.,]\d+)?)\s*secs\s*\]?\s*"
)
CLOSING_BRACKET_PATTERN: re.Pattern[str] = re.compile(r"\s*\]\s*")
PAUSE_PAIR_PATTERN: re.Pattern[str] = re.compile(r"\s*(?P<elapsed>[^/\s]+)/(?P<duration>\S+) ")

# Start of a nested timestamp or datestamp directly behind a tag ("[GC1.234: [ParNew")
_DETAIL_AHEAD_PATTERN: re.Pattern[str] = re.compile(r"\d{4}-\d{2}-\d{2}T|\d+[.,]\d+:")
_NEXT_DETAIL_PATTERN: re.Pattern[str] = re.compile(
    r"[\s,]*(?:\[|\d{4}-\d{2}-\d{2}T|\d+(?:[.,]\d+)?:)"
)
_TYPE_TERMINATORS = frozenset(":[],")


def _skip_blanks(line: str, index: int) -> int:
    while index < len(line) and line[index] == " ":
        index += 1
    return index


def _to_float(text: str) -> float:
    return float(text.replace(",", "."))


def parse_size_to_kb(size_text: str) -> int:
    """Parse a JVM size token like '1024K', '1.5M', '0B' into KB."""
    match = re.fullmatch(r"(?P<value>[\d.]+)(?P<unit>[BKMG])", size_text.strip())
    if not match:
        raise ValueError(f"Unrecognized size token: {size_text}")
    value = float(match.group("value"))
    if not math.isfinite(value):
        raise ValueError(f"Size token out of range: {size_text}")
    unit = match.group("unit")
    if unit == "B":
        return int(value / 1024)
    if unit == "K":
        return int(value)
    if unit == "M":
        return int(value * 1024)
    return int(value * 1024 * 1024)


# ============================================================
# SCANS
# ============================================================


def scan_datestamp(line: str, pos: ParsePosition) -> datetime | None | ScanFailure:
    """Scan an optional ``yyyy-MM-dd'T'HH:mm:ss[.SSS]Z:`` datestamp."""
    match = DATESTAMP_PATTERN.match(line, pos.index)
    if not match:
        return None
    text = match.group("datestamp").replace(",", ".")
    date_format = "%Y-%m-%dT%H:%M:%S.%f%z" if "." in text else "%Y-%m-%dT%H:%M:%S%z"
    try:
        datestamp = datetime.strptime(text, date_format)
    except ValueError:
        return ScanFailure(
            outcome="malformed_number", message=f"invalid datestamp {text!r}", index=pos.index
        )
    pos.index = match.end()
    return datestamp


def scan_timestamp(line: str, pos: ParsePosition) -> float | ScanFailure:
    """Scan a ``<seconds>:`` timestamp."""
    match = TIMESTAMP_PATTERN.match(line, pos.index)
    if not match:
        return ScanFailure(
            outcome="malformed_number",
            message=f"expected timestamp at position {pos.index}",
            index=pos.index,
        )
    pos.index = match.end()
    return _to_float(match.group("timestamp"))


def scan_type(line: str, pos: ParsePosition) -> GCType | ScanFailure:
    """Scan ``[<tag>`` and look the tag up in ``TYPE_TABLE``."""
    i = _skip_blanks(line, pos.index)
    if i >= len(line) or line[i] != "[":
        return ScanFailure(
            outcome="unexpected_token", message=f"expected '[' at position {i}", index=i
        )
    start = i = i + 1
    while i < len(line):
        char = line[i]
        if char in _TYPE_TERMINATORS:
            break
        if (
            char.isdigit()
            and i > start
            and (line[i - 1] == " " or _DETAIL_AHEAD_PATTERN.match(line, i))
        ):
            break
        i += 1

    name = line[start:i].strip()
    gc_type = lookup_type(name)
    if gc_type is None:
        return ScanFailure(outcome="unknown_type", message=f"unknown gc type {name!r}", index=start)

    if i < len(line) and line[i] == ":":
        i += 1
    pos.index = _skip_blanks(line, i)
    return gc_type


def scan_memory(line: str, pos: ParsePosition) -> HeapUsage | ScanFailure:
    """Scan ``<before>K-><after>K(<total>K)``; before and total are optional."""
    match = MEMORY_PATTERN.match(line, pos.index)
    if not match:
        return ScanFailure(
            outcome="malformed_number",
            message=f"expected memory information at position {pos.index}",
            index=pos.index,
        )
    before = match.group("before")
    total = match.group("total")
    pos.index = match.end()
    return HeapUsage(
        before_kb=parse_size_to_kb(before) if before else None,
        after_kb=parse_size_to_kb(match.group("after")),
        total_kb=parse_size_to_kb(total) if total else None,
    )


def scan_pause(line: str, pos: ParsePosition) -> float | None:
    """Scan an optional ``, <pause> secs]``; a bare closing bracket is consumed as well."""
    if match := PAUSE_PATTERN.match(line, pos.index):
        pos.index = match.end()
        return _to_float(match.group("pause"))
    if match := CLOSING_BRACKET_PATTERN.match(line, pos.index):
        pos.index = match.end()
    return None


def scan_pause_pair(line: str, pos: ParsePosition) -> tuple[float, float] | ScanFailure:
    """Scan ``<elapsed>/<duration> secs`` of a concurrent phase."""
    match = PAUSE_PAIR_PATTERN.match(line, pos.index)
    if match:
        try:
            elapsed = _to_float(match.group("elapsed"))
            duration = _to_float(match.group("duration"))
        except ValueError:
            pass
        else:
            pos.index = match.end()
            return elapsed, duration
    return ScanFailure(
        outcome="malformed_number",
        message=f"expected '<elapsed>/<duration> secs' at position {pos.index}",
        index=pos.index,
    )


# ============================================================
# DETAIL LOOK-AHEAD
# ============================================================


def has_next_detail(line: str, pos: ParsePosition) -> bool:
    """Is the next token a nested timestamp, datestamp or type bracket?"""
    return _NEXT_DETAIL_PATTERN.match(line, pos.index) is not None


def skip_separators(line: str, pos: ParsePosition) -> None:
    """Move past blanks and commas between two details."""
    i = pos.index
    while i < len(line) and line[i] in " ,":
        i += 1
    pos.index = i


def next_char_is_bracket(line: str, pos: ParsePosition) -> bool:
    i = _skip_blanks(line, pos.index)
    return i < len(line) and line[i] == "["


def skip_until_end_of_detail(line: str, pos: ParsePosition) -> None:
    """Move the cursor behind the next closing bracket and following blanks."""
    end = line.find("]", pos.index) + 1
    if end > pos.index:
        pos.index = _skip_blanks(line, end)
