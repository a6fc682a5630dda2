"""Run configuration for the simulation controller."""

from __future__ import annotations

from typing import Literal

import joblib  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field


def default_worker_count() -> int:
    """Return the CPU count minus one reserved for the controlling process."""
    return max(1, int(joblib.cpu_count()) - 1)


class SimulationConfig(BaseModel):
    """Validated settings for one simulation run.

    ``percentile_trials=0`` disables distribution statistics.  ``seed=None``
    draws fresh entropy; the entropy actually used is reported on the run
    result so the run can be replayed.
    """

    model_config = ConfigDict(extra="forbid")

    target_trials: int = Field(default=100_000, ge=1)
    initial_batch_size: int = Field(default=1_000, ge=1)
    percentile_trials: int = Field(default=20_000, ge=0)
    n_workers: int | None = Field(default=None, ge=1)
    backend: Literal["loky", "threading", "sequential"] = "loky"
    seed: int | None = Field(default=None, ge=0)
    max_retries: int = Field(default=2, ge=0)
    missing_probability_as_zero: bool = False

    @property
    def resolved_workers(self) -> int:
        """Return the worker count, defaulting to CPU count minus one."""
        return self.n_workers if self.n_workers is not None else default_worker_count()
