"""Line reassembly for Sun / Oracle 1.4 - 1.7 GC logs.

Supports ``-XX:+UseSerialGC``, ``-XX:+UseParallelGC``, ``-XX:+UseParallelOldGC``,
``-XX:+UseParNewGC`` and ``-XX:+UseConcMarkSweepGC`` with the options
``-XX:+PrintGCDetails``, ``-XX:+PrintGCTimeStamps``, ``-XX:+PrintGCDateStamps``
and ``-XX:+CMSScavengeBeforeRemark``. The output of ``-XX:+PrintHeapAtGC``,
``-XX:+PrintTenuringDistribution`` and ``-XX:+PrintAdaptiveSizePolicy`` is
skipped, but the events it interrupts are put back together.

Depending on the options, one event can be spread over several physical
lines, or two events can share one line. The reader repairs both cases
before handing a logical line to ``parse_line``.
"""

from __future__ import annotations

import logging
import re
from itertools import islice
from pathlib import Path
from typing import Iterable, TextIO

from .config import ReaderConfig
from .errors import GCLogReadError, StructuralMismatchError
from .model import GCModel, LogFormat
from .parser import parse_line
from .scanner import ParsePosition

logger = logging.getLogger(__name__)

# ============================================================
# LITERAL TABLES
# ============================================================

UNLOADING_CLASS = "[Unloading class "

# lines starting with one of these carry no event data
EXCLUDE_PREFIXES: tuple[str, ...] = (
    UNLOADING_CLASS,
    "Desired survivor",
    "Application time:",
    "Total time for which application threads were stopped:",
    "- age",
    " [Times",
)

EVENT_YG_OCCUPANCY = "YG occupancy"
EVENT_PARNEW = "ParNew"
EVENT_DEFNEW = "DefNew"

CMS_ABORT_PRECLEAN = " CMS: abort preclean due to time "

# -XX:+PrintTenuringDistribution cuts the young collection right after its tag
TENURING_DISTRIBUTION_ENDINGS: tuple[str, ...] = (
    "[DefNew",
    "[ParNew",
    "[ParNew (promotion failed)",
)

HEAP_SIZING_START = "Heap"

HEAP_DUMP_PREFIXES: tuple[str, ...] = (
    "def new generation",  # -XX:+UseSerialGC
    "PSYoungGen",  # -XX:+UseParallelGC
    "par new generation",  # -XX:+UseParNewGC / CMS
    "eden space",
    "from space",
    "to   space",
    "ParOldGen",  # -XX:+UseParallelOldGC
    "PSOldGen",
    "object space",
    "PSPermGen",
    "tenured generation",
    "the space",
    "ro space",
    "rw space",
    "compacting perm gen",
    "concurrent mark-sweep generation total",
    "concurrent-mark-sweep perm gen",
    "Metaspace",
    "class space",
    "No shared spaces configured.",
    "}",
)

ADAPTIVE_SIZE_MARKER = "AdaptiveSize"

ADAPTIVE_SIZE_POLICY_PREFIXES: tuple[str, ...] = (
    "PSAdaptiveSize",
    "AdaptiveSize",
    "avg_survived_padded_avg",
)

# "0.175: [GCAdaptiveSizePolicy::compute_survivor_space_size_and_thresh: ..."
ADAPTIVE_SIZE_POLICY_PATTERN: re.Pattern[str] = re.compile(r"(.*GC|.*\(System\))Adaptive.*")

# Some 1.6 updates write the start of the next event right behind "[CMS", "[ParNew"
# or "[DefNew" when a promotion failure leads to a concurrent mode failure:
# "...[CMS1.234: [CMS-concurrent-mark: ..." followed by " (concurrent mode failure): ..."
LINES_MIXED_PATTERN: re.Pattern[str] = re.compile(
    r"(?P<head>.* \[(?:CMS|ParNew|DefNew))(?P<tail>[0-9]+[-.].*)"
)

# ============================================================
# INPUT
# ============================================================


class LineSource:
    """Line reader over a text stream that can push one line back."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._pushed_back: list[str] = []
        self.line_number = 0

    def read_line(self) -> str | None:
        """Return the next line without its terminator, or None at end of input."""
        if self._pushed_back:
            line = self._pushed_back.pop()
        else:
            try:
                raw_line = self._stream.readline()
            except (OSError, UnicodeDecodeError) as e:
                raise GCLogReadError(
                    f"Failed to read line {self.line_number + 1}: {e}"
                ) from e
            if not raw_line:
                return None
            line = raw_line.rstrip("\r\n")
        self.line_number += 1
        return line

    def push_back(self, line: str) -> None:
        self._pushed_back.append(line)
        self.line_number -= 1

    def close(self) -> None:
        self._stream.close()


# ============================================================
# READER
# ============================================================


def is_print_tenuring_distribution(line: str) -> bool:
    return line.endswith(TENURING_DISTRIBUTION_ENDINGS)


def is_cms_scavenge_before_remark(line: str) -> bool:
    """-XX:+CMSScavengeBeforeRemark puts a young collection into the remark line."""
    return EVENT_YG_OCCUPANCY in line and (EVENT_PARNEW in line or EVENT_DEFNEW in line)


def is_heap_dump_start(line: str) -> bool:
    """-XX:+PrintHeapAtGC or the heap summary at JVM exit."""
    return line.lstrip("{").startswith(HEAP_SIZING_START)


class SunGCLogReader:
    """Reads Sun / Oracle 1.4.x - 1.7.x GC logs (all collectors but G1)."""

    gc_type_name: str = "Sun / Oracle 1.4.x - 1.7.x"

    def __init__(self, stream: TextIO, config: ReaderConfig | None = None) -> None:
        self._source = LineSource(stream)
        self._config = config or ReaderConfig()
        self.failed_line_count = 0

    def read(self) -> GCModel:
        """Read the whole input and return its events.

        Malformed lines are logged and skipped. Raises ``GCLogReadError`` (with the
        events read so far in ``.model``) only if the input itself fails. The input
        is closed on every path.
        """
        logger.info("Reading %s format...", self.gc_type_name)
        model = GCModel(format="sun_x_log_gc")
        # more than one beginning of a line may be pending at the same time
        pending: list[str] = []
        pos = ParsePosition()
        try:
            while (line := self._source.read_line()) is not None:
                pos.line_number = self._source.line_number
                if not line:
                    continue
                try:
                    self._process_line(line, pending, pos, model)
                except GCLogReadError:
                    raise
                except Exception as e:
                    self.failed_line_count += 1
                    logger.warning(
                        "Failed to parse line %d (%s): %r", pos.line_number, e, line
                    )
                    logger.debug("Parse failure details", exc_info=True)
                    pending.clear()
                pos.index = 0
                self._limit_pending(pending)
        except GCLogReadError as e:
            e.model = model
            raise
        finally:
            model.failed_line_count = self.failed_line_count
            self._source.close()
            logger.info("Done reading.")
        return model

    def _process_line(
        self, line: str, pending: list[str], pos: ParsePosition, model: GCModel
    ) -> None:
        """Apply the reassembly rules to one physical line (first match wins)."""
        if line.startswith(EXCLUDE_PREFIXES):
            return

        if CMS_ABORT_PRECLEAN in line:
            line = line.replace(CMS_ABORT_PRECLEAN, "", 1)

        if is_cms_scavenge_before_remark(line):
            # two events in one line: the young collection is split off; with
            # -XX:+PrintTenuringDistribution it is itself spread over several lines
            end_of_occupancy = line.find("]", line.index(EVENT_YG_OCCUPANCY))
            if end_of_occupancy < 0:
                raise StructuralMismatchError(
                    "no closing bracket after young generation occupancy",
                    line,
                    line_number=pos.line_number,
                )
            start_of_second_event = end_of_occupancy + 1
            pending.append(line[:start_of_second_event])
            second_event = line[start_of_second_event:]
            if is_print_tenuring_distribution(second_event):
                pending.append(second_event)
            else:
                self._parse_into(model, second_event, pos)
            return

        unloading_class_index = line.find(UNLOADING_CLASS)
        if unloading_class_index > 0:
            pending.append(line[:unloading_class_index])
            return

        if is_print_tenuring_distribution(line):
            pending.append(line)
            return

        if mixed := LINES_MIXED_PATTERN.fullmatch(line):
            # a pending beginning (tenuring distribution) must be kept in front
            beginning = pending.pop() if pending else ""
            pending.append(beginning + mixed.group("head"))
            self._parse_into(model, mixed.group("tail"), pos)
            return

        prefix = pending.pop() if pending else None

        if ADAPTIVE_SIZE_MARKER in line:
            adaptive = ADAPTIVE_SIZE_POLICY_PATTERN.fullmatch(line)
            if not adaptive:
                raise StructuralMismatchError(
                    "adaptive size policy output without preceding collection",
                    line,
                    line_number=pos.line_number,
                )
            pending.append((prefix or "") + adaptive.group(1))
            self._skip_lines(ADAPTIVE_SIZE_POLICY_PREFIXES)
            return

        if is_heap_dump_start(line):
            if prefix is not None:
                pending.append(prefix)
            self._skip_lines(HEAP_DUMP_PREFIXES)
            return

        if prefix is not None:
            line = prefix + line
        self._parse_into(model, line, pos)

    def _parse_into(self, model: GCModel, line: str, pos: ParsePosition) -> None:
        pos.index = 0
        model.add(parse_line(line, pos))

    def _skip_lines(self, prefixes: tuple[str, ...]) -> None:
        """Drop following lines that start with one of ``prefixes``.

        The first line that does not match is pushed back and read as the next
        physical line.
        """
        skipped = 0
        while (line := self._source.read_line()) is not None:
            if not line.strip().startswith(prefixes):
                self._source.push_back(line)
                break
            skipped += 1
        logger.debug("Skipped %d diagnostic lines", skipped)

    def _limit_pending(self, pending: list[str]) -> None:
        while len(pending) > self._config.max_pending_prefixes:
            dropped = pending.pop(0)
            logger.warning("Dropping unfinished line fragment %r", dropped)


# ============================================================
# ENTRY POINTS
# ============================================================


def detect_log_format(log_lines: Iterable[str]) -> LogFormat:
    """Detect the log format from sample lines."""
    sample = "".join(log_lines)

    if any(
        pattern in sample
        for pattern in ["G1 Evacuation", "[gc,", "G1Young", "G1Mixed", "garbage-first"]
    ):
        raise ValueError(
            "G1 / unified logging format is not supported. "
            "Supported collectors: Serial, Parallel, ParallelOld, ParNew, CMS"
        )
    if any(
        pattern in sample
        for pattern in ["[GC", "[Full GC", "ParNew", "DefNew", "PSYoungGen", "CMS"]
    ):
        return "sun_x_log_gc"
    raise ValueError(
        "Unsupported or unrecognized GC log format. "
        "Supported formats: Sun / Oracle 1.4.x - 1.7.x (Serial, Parallel, ParNew, CMS)"
    )


def read_gc_log(path: Path, config: ReaderConfig | None = None) -> GCModel:
    """Read a GC log file into a ``GCModel``."""
    config = config or ReaderConfig()
    stream = path.open(encoding=config.encoding, errors=config.errors)
    return SunGCLogReader(stream, config).read()


def sample_lines(path: Path, config: ReaderConfig | None = None) -> list[str]:
    """Return the first lines of a file for format detection."""
    config = config or ReaderConfig()
    with path.open(encoding=config.encoding, errors=config.errors) as f:
        return list(islice(f, config.detection_sample_lines))
