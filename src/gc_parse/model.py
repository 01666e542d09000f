"""Typed GC events produced from Sun / Oracle JVM garbage collection logs.

Three event shapes exist, discriminated by ``kind``:

- ``ConcurrentMarker``: start of a concurrent phase (tag only)
- ``ConcurrentPhase``: end of a concurrent phase (elapsed/duration pair)
- ``CollectionEvent``: stop-the-world collection with memory, pause and
  nested detail collections
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

# ============================================================
# TYPE ALIASES
# ============================================================

Generation: TypeAlias = Literal["young", "tenured", "perm", "all"]
Concurrency: TypeAlias = Literal["ordinary", "concurrent"]
GCPattern: TypeAlias = Literal["marker", "pause_pair", "memory_pause"]
LogFormat: TypeAlias = Literal["sun_x_log_gc"]
KilobytesValue: TypeAlias = int
SecondsValue: TypeAlias = float

# ============================================================
# PYDANTIC MODELS
# ============================================================


class GCType(BaseModel):
    """Classification of a bracketed type tag like ``[ParNew`` or ``[CMS-concurrent-mark``."""

    model_config = ConfigDict(frozen=True)

    name: str
    generation: Generation
    concurrency: Concurrency = "ordinary"
    pattern: GCPattern = "memory_pause"

    @property
    def is_concurrent(self) -> bool:
        return self.concurrency == "concurrent"


class HeapUsage(BaseModel):
    """Memory triple ``<before>K-><after>K(<total>K)``; before/total may be absent."""

    model_config = ConfigDict(frozen=True)

    before_kb: KilobytesValue | None = None
    after_kb: KilobytesValue
    total_kb: KilobytesValue | None = None


class ConcurrentMarker(BaseModel):
    """Bare concurrent phase marker, e.g. ``[CMS-concurrent-mark-start]``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["concurrent_marker"] = "concurrent_marker"
    datestamp: datetime | None = None
    uptime_seconds: SecondsValue
    gc_type: GCType


class ConcurrentPhase(BaseModel):
    """Concurrent phase reporting ``<elapsed>/<duration> secs``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["concurrent_phase"] = "concurrent_phase"
    datestamp: datetime | None = None
    uptime_seconds: SecondsValue
    gc_type: GCType
    elapsed_seconds: SecondsValue
    duration_seconds: SecondsValue


class CollectionEvent(BaseModel):
    """Stop-the-world collection, possibly carrying nested detail collections."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["collection"] = "collection"
    datestamp: datetime | None = None
    uptime_seconds: SecondsValue
    gc_type: GCType

    before_kb: KilobytesValue | None = None
    after_kb: KilobytesValue | None = None
    total_kb: KilobytesValue | None = None
    pause_seconds: SecondsValue | None = None

    details: list[CollectionEvent] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        *,
        datestamp: datetime | None,
        uptime_seconds: float,
        gc_type: GCType,
        heap: HeapUsage | None,
        pause_seconds: float | None,
        details: list[CollectionEvent] | None = None,
    ) -> CollectionEvent:
        """Create an event from scanned parts."""
        return cls(
            datestamp=datestamp,
            uptime_seconds=uptime_seconds,
            gc_type=gc_type,
            before_kb=heap.before_kb if heap else None,
            after_kb=heap.after_kb if heap else None,
            total_kb=heap.total_kb if heap else None,
            pause_seconds=pause_seconds,
            details=details or [],
        )


GCEvent: TypeAlias = Annotated[
    ConcurrentMarker | ConcurrentPhase | CollectionEvent,
    Field(discriminator="kind"),
]


class GCModel(BaseModel):
    """Ordered, append-only sequence of top-level events for one log."""

    format: LogFormat = "sun_x_log_gc"
    events: list[GCEvent] = Field(default_factory=list)
    failed_line_count: int = 0

    def add(self, event: GCEvent) -> None:
        self.events.append(event)

    def __len__(self) -> int:
        return len(self.events)
