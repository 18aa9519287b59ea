#
# Copyright (C) 2022 Intel Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
import asyncio
import threading
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from task_metrics_publisher.metrics import MetricDatum


class RecordingClient:
    """
    Stand-in for the ingestion service client, records every batch it is given.
    Fails the `fail_on`-th call (1-based) with `error`, if set.
    """

    def __init__(self, fail_on: Optional[int] = None, error: Optional[Exception] = None):
        self.calls: List[Tuple[str, List[MetricDatum]]] = []
        self._fail_on = fail_on
        self._error = error if error is not None else RuntimeError("throttled")
        self._lock = threading.Lock()

    def put_metric_data(self, namespace: str, metric_data: Sequence[MetricDatum]) -> dict:
        with self._lock:
            self.calls.append((namespace, list(metric_data)))
            if self._fail_on is not None and len(self.calls) >= self._fail_on:
                raise self._error
            return {"accepted": len(metric_data)}


class AsyncRecordingClient(RecordingClient):
    async def put_metric_data(self, namespace: str, metric_data: Sequence[MetricDatum]) -> dict:  # type: ignore
        return super().put_metric_data(namespace, metric_data)


def wait_for(predicate: Callable[[], bool], timeout: float = 10) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        assert time.monotonic() < deadline, "timed out waiting for condition"
        time.sleep(0.01)


class BlockingRecordingClient(RecordingClient):
    def __init__(self, delay: float):
        super().__init__()
        self._delay = delay

    def put_metric_data(self, namespace: str, metric_data: Sequence[MetricDatum]) -> dict:
        time.sleep(self._delay)
        return super().put_metric_data(namespace, metric_data)


T = TypeVar("T")


async def run_with_ticker(awaitable: Awaitable[T], interval: float = 0.01) -> Tuple[T, int]:
    """
    Awaits `awaitable` while another task ticks every `interval`. Returns its result and the number of ticks,
    which stays near zero if the event loop was blocked meanwhile.
    """
    ticks = 0

    async def tick() -> None:
        nonlocal ticks
        while True:
            await asyncio.sleep(interval)
            ticks += 1

    ticker = asyncio.ensure_future(tick())
    try:
        result = await awaitable
    finally:
        ticker.cancel()
    return result, ticks
