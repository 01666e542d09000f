"""Shared pytest fixtures for gc_parse tests."""
from __future__ import annotations

import io
from pathlib import Path

import pytest

from gc_parse.model import GCModel
from gc_parse.reader import SunGCLogReader


@pytest.fixture()
def gc_log_file(tmp_path: Path):
    """Return a factory that creates temporary GC log files."""

    def _make(lines: list[str], name: str = "gc.log") -> Path:
        p = tmp_path / name
        p.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return p

    return _make


@pytest.fixture()
def read_lines():
    """Return a helper that runs the reader over in-memory lines."""

    def _read(lines: list[str]) -> GCModel:
        return SunGCLogReader(io.StringIO("\n".join(lines) + "\n")).read()

    return _read


@pytest.fixture()
def cms_log_lines() -> list[str]:
    return [
        "0.120: [GC 0.120: [ParNew: 4416K->512K(4928K), 0.0060270 secs] 4416K->1193K(15872K), 0.0061010 secs]",
        "0.406: [GC [1 CMS-initial-mark: 7664K(12288K)] 7666K(16320K), 0.0006855 secs]",
        "0.407: [CMS-concurrent-mark-start]",
        "0.427: [CMS-concurrent-mark: 0.020/0.020 secs]",
        "0.427: [CMS-concurrent-preclean-start]",
        "0.428: [CMS-concurrent-preclean: 0.001/0.001 secs]",
        "0.428: [GC[YG occupancy: 961 K (4928 K)]0.428: [Rescan (parallel) , 0.0006140 secs]0.429: [weak refs processing, 0.0000078 secs] [1 CMS-remark: 7664K(12288K)] 8625K(17216K), 0.0018237 secs]",
        "0.430: [CMS-concurrent-sweep-start]",
        "0.431: [CMS-concurrent-sweep: 0.001/0.001 secs]",
        "0.431: [CMS-concurrent-reset-start]",
        "0.432: [CMS-concurrent-reset: 0.001/0.001 secs]",
    ]


@pytest.fixture()
def parallel_log_lines() -> list[str]:
    return [
        "0.250: [GC [PSYoungGen: 16420K->2657K(19136K)] 16420K->15919K(62848K), 0.0109211 secs] [Times: user=0.02 sys=0.00, real=0.01 secs]",
        "0.501: [Full GC (System) [PSYoungGen: 2657K->0K(19136K)] [PSOldGen: 13262K->15800K(43712K)] 15919K->15800K(62848K) [PSPermGen: 2031K->2031K(21248K)], 0.0371090 secs]",
    ]
