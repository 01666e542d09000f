"""Reader configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ReaderConfig(BaseModel):
    """Settings for one read session; the CLI fills these from its options."""

    encoding: str = Field(default="utf-8", description="Text encoding of the log file")
    errors: str = Field(
        default="replace", description="Codec error policy (strict|replace|ignore)"
    )
    max_pending_prefixes: int = Field(
        default=4, ge=1, description="Upper bound of buffered line fragments"
    )
    detection_sample_lines: int = Field(
        default=300, ge=1, description="Lines inspected when detecting the log format"
    )
