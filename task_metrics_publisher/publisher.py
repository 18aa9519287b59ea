#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import asyncio
import functools
import inspect
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple, Union

from task_metrics_publisher.exceptions import RemoteSendError
from task_metrics_publisher.log import get_logger_adapter
from task_metrics_publisher.metrics import Dimensions, MetricDatum, TaskMetrics, Unit, to_micros
from task_metrics_publisher.monitor import TaskMetricsSource, iter_intervals
from task_metrics_publisher.utils import to_seconds, utc_now

logger = get_logger_adapter(__name__)


class MetricDataClient(Protocol):
    # May also be an "async def".
    def put_metric_data(self, namespace: str, metric_data: Sequence[MetricDatum]) -> Any:
        ...


def _count(name: str) -> Tuple[str, Unit, Callable[[TaskMetrics], float]]:
    return name, Unit.COUNT, lambda metrics: float(getattr(metrics, name))


def _duration(name: str) -> Tuple[str, Unit, Callable[[TaskMetrics], float]]:
    return name, Unit.MICROSECONDS, lambda metrics: to_micros(getattr(metrics, name))


def _percent(name: str) -> Tuple[str, Unit, Callable[[TaskMetrics], float]]:
    # the snapshot holds a 0-1 fraction, the service expects 0-100 for Percent
    return name, Unit.PERCENT, lambda metrics: float(getattr(metrics, name)) * 100


TASK_METRIC_FIELDS: List[Tuple[str, Unit, Callable[[TaskMetrics], float]]] = [
    # lifespan
    _count("instrumented_count"),
    _count("dropped_count"),
    # first polls
    _count("first_poll_count"),
    _duration("total_first_poll_delay"),
    _duration("mean_first_poll_delay"),
    # idles
    _count("total_idled_count"),
    _duration("total_idle_duration"),
    _duration("mean_idle_duration"),
    # schedules
    _count("total_scheduled_count"),
    _duration("total_scheduled_duration"),
    _duration("mean_scheduled_duration"),
    # polls
    _count("total_poll_count"),
    _duration("total_poll_duration"),
    _duration("mean_poll_duration"),
    _percent("slow_poll_ratio"),
    # fast polls
    _count("total_fast_poll_count"),
    _duration("total_fast_poll_duration"),
    _duration("mean_fast_poll_duration"),
    # slow polls
    _count("total_slow_poll_count"),
    _duration("total_slow_poll_duration"),
    _duration("mean_slow_poll_duration"),
]


def build_task_metric_data(
    metrics: TaskMetrics, timestamp: datetime, dimensions: Optional[Dimensions] = None
) -> List[MetricDatum]:
    # one tuple instance shared by the whole batch
    shared_dimensions = tuple(dimensions) if dimensions is not None else ()
    return [
        MetricDatum(name=name, unit=unit, value=accessor(metrics), timestamp=timestamp, dimensions=shared_dimensions)
        for name, unit, accessor in TASK_METRIC_FIELDS
    ]


async def _put_metric_data(client: MetricDataClient, namespace: str, metric_data: List[MetricDatum]) -> Any:
    if inspect.iscoroutinefunction(client.put_metric_data):
        return await client.put_metric_data(namespace, metric_data)
    # blocking clients (requests based) run in the default executor, so other tasks keep running meanwhile
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(client.put_metric_data, namespace, metric_data))


async def send_task_metrics(
    client: MetricDataClient,
    namespace: str,
    dimensions: Optional[Dimensions],
    metrics: TaskMetrics,
    timestamp: datetime,
) -> Any:
    """
    Sends a single TaskMetrics snapshot as one batch of metric data, all stamped with `timestamp` and tagged
    with `dimensions`.
    Returns the client's response as-is; raises RemoteSendError if the client failed.
    """
    metric_data = build_task_metric_data(metrics, timestamp, dimensions)
    logger.debug("Sending task metrics", namespace=namespace, metric_count=len(metric_data))
    try:
        return await _put_metric_data(client, namespace, metric_data)
    except Exception as e:
        raise RemoteSendError(namespace, e) from e


async def stream_task_metrics(
    client: MetricDataClient,
    namespace: str,
    dimensions: Optional[Dimensions],
    monitor: TaskMetricsSource,
    frequency: Union[float, timedelta],
) -> None:
    """
    Samples the task metrics of `monitor` and sends them, waiting `frequency` after each send.
    Returns once the monitor stops producing intervals. The first failed send aborts the stream (RemoteSendError).
    """
    sleep_seconds = to_seconds(frequency)
    async for metrics in iter_intervals(monitor):
        await send_task_metrics(client, namespace, dimensions, metrics, utc_now())
        await asyncio.sleep(sleep_seconds)
