"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class StageStatus(str, Enum):
    CACHED = "cached"
    RECOMPUTED = "recomputed"
    FAILED = "failed"


@dataclass(frozen=True)
class StageResult:
    """Outcome of one stage: whether its output was reused, rebuilt or is unavailable."""

    stage: str
    status: StageStatus
    value: Any = None
    error_code: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not StageStatus.FAILED

    @property
    def recomputed(self) -> bool:
        return self.status is StageStatus.RECOMPUTED

    @classmethod
    def cached(cls, stage: str, value: Any = None) -> "StageResult":
        return cls(stage=stage, status=StageStatus.CACHED, value=value)

    @classmethod
    def rebuilt(cls, stage: str, value: Any = None) -> "StageResult":
        return cls(stage=stage, status=StageStatus.RECOMPUTED, value=value)

    @classmethod
    def failed(cls, stage: str, error_code: str) -> "StageResult":
        return cls(stage=stage, status=StageStatus.FAILED, error_code=error_code)

    def to_dict(self) -> dict[str, Any]:
        return {"stage": self.stage, "status": self.status.value, "error_code": self.error_code}
