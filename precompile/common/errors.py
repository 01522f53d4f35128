"""Failure types raised across the precompile pipeline.

Every error carries an ``error_code`` that ends up in the JSON log lines and
in ``run_summary.json``.
"""

from __future__ import annotations


class PipelineError(Exception):
    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Missing or malformed YAML configuration; fatal for the whole run."""

    error_code = "CONFIG_ERROR"


class ContractError(PipelineError):
    """An input file (boundaries, cached partition) has an unexpected shape."""

    error_code = "CONTRACT_ERROR"


class StageError(PipelineError):
    """A stage left a region without usable data."""

    error_code = "STAGE_ERROR"

    def __init__(self, message: str, *, stage: str | None = None, error_code: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        if error_code:
            self.error_code = error_code
