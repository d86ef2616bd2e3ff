"""Runtime configuration for batch and partitioned prediction."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

EXECUTOR_ENV = "BKM_EXECUTOR"
MAX_WORKERS_ENV = "BKM_MAX_WORKERS"
NUM_PARTITIONS_ENV = "BKM_NUM_PARTITIONS"

EXECUTORS = ("serial", "thread", "process")

DEFAULT_EXECUTOR = "thread"
DEFAULT_NUM_PARTITIONS = 4


@dataclass(frozen=True)
class ServingConfig:
    """How partitioned datasets are processed.

    Attributes:
        executor: ``"serial"``, ``"thread"`` or ``"process"``.
        max_workers: Worker count for the pool; None lets
            :mod:`concurrent.futures` pick its default.
        num_partitions: Partition count used when a local sequence is
            split with :meth:`PartitionedDataset.from_sequence`.
    """

    executor: str = DEFAULT_EXECUTOR
    max_workers: Optional[int] = None
    num_partitions: int = DEFAULT_NUM_PARTITIONS

    def __post_init__(self) -> None:
        if self.executor not in EXECUTORS:
            raise ValueError(
                f"Unknown executor {self.executor!r}; expected one of {', '.join(EXECUTORS)}"
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")
        if self.num_partitions < 1:
            raise ValueError(f"num_partitions must be positive, got {self.num_partitions}")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_positive_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def get_serving_config() -> ServingConfig:
    """Resolve serving configuration from environment with defaults."""

    executor = _get_env(EXECUTOR_ENV, DEFAULT_EXECUTOR).strip().lower()
    if executor not in EXECUTORS:
        raise ValueError(
            f"{EXECUTOR_ENV} must be one of {', '.join(EXECUTORS)}, got {executor!r}"
        )
    return ServingConfig(
        executor=executor,
        max_workers=_get_positive_int(MAX_WORKERS_ENV, None),
        num_partitions=_get_positive_int(NUM_PARTITIONS_ENV, DEFAULT_NUM_PARTITIONS),
    )
