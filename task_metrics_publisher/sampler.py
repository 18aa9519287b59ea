#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import asyncio
from datetime import timedelta
from threading import Event, Thread
from typing import Optional, Union

from task_metrics_publisher.exceptions import ThreadStopTimeoutError
from task_metrics_publisher.log import get_logger_adapter
from task_metrics_publisher.metrics import Dimensions
from task_metrics_publisher.monitor import TaskMetricsSource
from task_metrics_publisher.publisher import MetricDataClient, stream_task_metrics

STOP_TIMEOUT_SECONDS = 30

logger = get_logger_adapter(__name__)


class TaskMetricsSampler:
    """
    Streams task metrics from a background thread, for hosts that don't run an event loop of their own.
    """

    def __init__(
        self,
        client: MetricDataClient,
        namespace: str,
        monitor: TaskMetricsSource,
        sample_period: Union[float, timedelta],
        dimensions: Optional[Dimensions] = None,
    ):
        self._client = client
        self._namespace = namespace
        self._monitor = monitor
        self._sample_period = sample_period
        self._dimensions = dimensions
        self._collection_thread: Optional[Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional["asyncio.Task[None]"] = None
        self._started_event = Event()
        self._is_running = False
        self._error: Optional[BaseException] = None

    def start(self) -> None:
        if self._collection_thread is not None:
            assert not self._is_running, "TaskMetricsSampler is already running"
            # the previous stream ended on its own, its thread is exiting
            self._collection_thread.join(STOP_TIMEOUT_SECONDS)
            if self._collection_thread.is_alive():
                raise ThreadStopTimeoutError("Timed out while waiting for the previous TaskMetricsSampler thread")
            self._collection_thread = None
        self._started_event.clear()
        self._error = None
        self._is_running = True
        self._collection_thread = Thread(target=self._collect_loop, name="task-metrics-sampler", daemon=True)
        self._collection_thread.start()
        self._started_event.wait()

    def _collect_loop(self) -> None:
        loop = asyncio.new_event_loop()
        try:
            self._loop = loop
            self._task = loop.create_task(
                stream_task_metrics(
                    self._client, self._namespace, self._dimensions, self._monitor, self._sample_period
                )
            )
            self._started_event.set()
            try:
                loop.run_until_complete(self._task)
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self._error = e
                logger.exception("Task metrics stream stopped with an error", namespace=self._namespace)
            else:
                logger.info("Task metrics stream completed", namespace=self._namespace)
        finally:
            self._started_event.set()
            self._is_running = False
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def stop(self) -> None:
        thread = self._collection_thread
        if thread is None:
            return
        if thread.is_alive():
            loop, task = self._loop, self._task
            if loop is not None and task is not None and not loop.is_closed():
                try:
                    loop.call_soon_threadsafe(task.cancel)
                except RuntimeError:
                    # the loop was closed in between, the thread is exiting on its own
                    pass
            thread.join(STOP_TIMEOUT_SECONDS)
            if thread.is_alive():
                raise ThreadStopTimeoutError("Timed out while waiting for the TaskMetricsSampler thread to stop")
        self._collection_thread = None

    def is_running(self) -> bool:
        return self._is_running

    @property
    def error(self) -> Optional[BaseException]:
        """
        The error that ended the stream, if any.
        """
        return self._error
