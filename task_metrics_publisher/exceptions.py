#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from typing import Optional


class APIError(Exception):
    def __init__(self, message: str, full_data: Optional[dict] = None):
        self.message = message
        self.full_data = full_data

    def __str__(self) -> str:
        return self.message


class RemoteSendError(Exception):
    """
    Raised when submitting a batch of metric data to the ingestion service fails, for whatever reason
    (authentication, throttling, malformed request, network...). The original exception is kept as `error`
    and chained as `__cause__`.
    """

    def __init__(self, namespace: str, error: BaseException):
        self.namespace = namespace
        self.error = error

    def __str__(self) -> str:
        return f"Failed to send task metrics (namespace {self.namespace!r}): {self.error!r}"


class ThreadStopTimeoutError(Exception):
    pass
