#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import asyncio
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, Protocol, Union, runtime_checkable

from task_metrics_publisher.metrics import TaskMetrics


@runtime_checkable
class TaskMonitor(Protocol):
    def intervals(self) -> Union[Iterator[TaskMetrics], AsyncIterator[TaskMetrics]]:
        """
        Returns the metrics of each successive interval, each covering the time since the previous one was
        taken.
        """
        ...


TaskMetricsSource = Union[TaskMonitor, Iterable[TaskMetrics], AsyncIterable[TaskMetrics]]

_EXHAUSTED = object()


async def iter_intervals(source: TaskMetricsSource) -> AsyncIterator[TaskMetrics]:
    intervals = source.intervals() if isinstance(source, TaskMonitor) else source
    if isinstance(intervals, AsyncIterable):
        async for metrics in intervals:
            yield metrics
        return

    # a sync source may block until its interval is over, so it is read off the event loop thread
    loop = asyncio.get_running_loop()
    iterator = iter(intervals)
    while True:
        metrics = await loop.run_in_executor(None, next, iterator, _EXHAUSTED)
        if metrics is _EXHAUSTED:
            return
        yield metrics
