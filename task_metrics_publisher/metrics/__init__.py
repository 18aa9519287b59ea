#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Sequence, Tuple, Union

from task_metrics_publisher.utils import get_iso8601_format_time

NANOS_PER_SEC = 1_000_000_000
NANOS_PER_MICRO = 1_000
MICROS_PER_SEC = 1_000_000

# (key, value) pairs, attached as-is to every datum of a batch.
Dimensions = Sequence[Tuple[str, str]]


def _mean(total_nanos: int, count: int) -> int:
    if count == 0:
        return 0
    return total_nanos // count


@dataclass(frozen=True)
class TaskMetrics:
    """
    Task execution metrics accumulated by a task monitor over one sampling interval.
    All durations are in nanoseconds.
    """

    # lifespan
    instrumented_count: int = 0
    dropped_count: int = 0
    # first polls
    first_poll_count: int = 0
    total_first_poll_delay: int = 0
    # idles
    total_idled_count: int = 0
    total_idle_duration: int = 0
    # schedules
    total_scheduled_count: int = 0
    total_scheduled_duration: int = 0
    # polls
    total_poll_count: int = 0
    total_poll_duration: int = 0
    total_fast_poll_count: int = 0
    total_fast_poll_duration: int = 0
    total_slow_poll_count: int = 0
    total_slow_poll_duration: int = 0

    @property
    def mean_first_poll_delay(self) -> int:
        return _mean(self.total_first_poll_delay, self.first_poll_count)

    @property
    def mean_idle_duration(self) -> int:
        return _mean(self.total_idle_duration, self.total_idled_count)

    @property
    def mean_scheduled_duration(self) -> int:
        return _mean(self.total_scheduled_duration, self.total_scheduled_count)

    @property
    def mean_poll_duration(self) -> int:
        return _mean(self.total_poll_duration, self.total_poll_count)

    @property
    def mean_fast_poll_duration(self) -> int:
        return _mean(self.total_fast_poll_duration, self.total_fast_poll_count)

    @property
    def mean_slow_poll_duration(self) -> int:
        return _mean(self.total_slow_poll_duration, self.total_slow_poll_count)

    @property
    def slow_poll_ratio(self) -> float:
        """
        Fraction (0 to 1) of polls that were slow.
        """
        if self.total_poll_count == 0:
            return 0.0
        return self.total_slow_poll_count / self.total_poll_count


def to_micros(duration: Union[int, timedelta]) -> float:
    """
    Converts a duration (nanoseconds, or a timedelta) to microseconds without losing the sub-microsecond part.
    The whole seconds and the sub-second nanoseconds are converted separately, so long durations keep their
    precision.
    """
    if isinstance(duration, timedelta):
        secs = duration.days * 86400 + duration.seconds
        subsec_nanos = duration.microseconds * NANOS_PER_MICRO
    else:
        secs, subsec_nanos = divmod(duration, NANOS_PER_SEC)
    return float(secs) * MICROS_PER_SEC + subsec_nanos / NANOS_PER_MICRO


class Unit(str, Enum):
    # Names as the ingestion service expects them.
    COUNT = "Count"
    MICROSECONDS = "Microseconds"
    PERCENT = "Percent"


@dataclass(frozen=True)
class MetricDatum:
    name: str  # metric name
    unit: Unit
    value: float
    timestamp: datetime
    dimensions: Dimensions = ()

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "MetricName": self.name,
            "Timestamp": get_iso8601_format_time(self.timestamp),
            "Unit": self.unit.value,
            "Values": [self.value],
        }
        if self.dimensions:
            payload["Dimensions"] = [{"Name": name, "Value": value} for name, value in self.dimensions]
        return payload
