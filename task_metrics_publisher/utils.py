#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from datetime import datetime, timedelta, timezone
from typing import Union


def get_iso8601_format_time(time: datetime) -> str:
    if time.tzinfo is not None:
        time = time.astimezone(timezone.utc).replace(tzinfo=None)
    return time.isoformat(timespec="microseconds") + "Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_seconds(period: Union[float, timedelta]) -> float:
    if isinstance(period, timedelta):
        return period.total_seconds()
    return float(period)
