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
from typing import List

from pytest import MonkeyPatch, fixture

from task_metrics_publisher.metrics import NANOS_PER_SEC, TaskMetrics
from tests import NANOS_PER_MILLI


@fixture
def task_metrics() -> TaskMetrics:
    return TaskMetrics(
        instrumented_count=10,
        dropped_count=2,
        first_poll_count=8,
        total_first_poll_delay=8 * NANOS_PER_MILLI,
        total_idled_count=4,
        total_idle_duration=2 * NANOS_PER_SEC + 500,
        total_scheduled_count=20,
        total_scheduled_duration=20 * NANOS_PER_MILLI,
        total_poll_count=40,
        total_poll_duration=60 * NANOS_PER_MILLI,
        total_fast_poll_count=30,
        total_fast_poll_duration=15 * NANOS_PER_MILLI,
        total_slow_poll_count=10,
        total_slow_poll_duration=45 * NANOS_PER_MILLI,
    )


@fixture
def recorded_sleeps(monkeypatch: MonkeyPatch) -> List[float]:
    """
    Replaces asyncio.sleep so streams don't actually wait, recording the requested delays.
    """
    sleeps: List[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay: float, *args, **kwargs):  # type: ignore
        sleeps.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return sleeps
