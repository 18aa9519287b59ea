#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import gzip
import json
from io import BytesIO
from typing import IO, Any, Dict, List, Optional, Sequence, cast

import requests
from requests import Session

from task_metrics_publisher import __version__
from task_metrics_publisher.exceptions import APIError
from task_metrics_publisher.log import get_logger_adapter
from task_metrics_publisher.metrics import MetricDatum

logger = get_logger_adapter(__name__)

DEFAULT_METRICS_SERVER_ADDRESS = "https://metrics.granulate.io"
DEFAULT_REQUEST_TIMEOUT = 5


class BaseAPIClient:
    def __init__(self, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self._timeout = timeout
        self._init_session()

    def _init_session(self) -> None:
        self._session: Session = requests.Session()

    def _request_url(
        self,
        method: str,
        url: str,
        data: Any,
        timeout: Optional[float] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict:
        opts: dict = {"headers": {}, "timeout": timeout if timeout is not None else self._timeout}
        if params is None:
            params = {}

        if method.upper() == "GET":
            if data is not None:
                params.update(data)
        else:
            opts["headers"]["Content-Encoding"] = "gzip"
            opts["headers"]["Content-type"] = "application/json"
            buffer = BytesIO()
            with gzip.open(buffer, mode="wt", encoding="utf-8") as gzip_file:
                try:
                    json.dump(data, cast(IO[str], gzip_file), ensure_ascii=False)
                except TypeError:
                    # This should only happen while in development, and is used to get a more indicative error.
                    bad_json = str(data)
                    logger.exception("Given data is not a valid JSON!", bad_json=bad_json)
                    raise
            opts["data"] = buffer.getvalue()

        opts["params"] = list(params.items())

        resp = self._session.request(method, url, **opts)
        if 400 <= resp.status_code < 500:
            try:
                response_data = resp.json()
            except ValueError:
                raise APIError(resp.text)
            raise APIError(response_data.get("message", "(no message in response)"), response_data)
        else:
            resp.raise_for_status()
        return cast(dict, resp.json())


class MetricsAPIClient(BaseAPIClient):
    """
    Client of the metrics ingestion service. A single instance may be shared between any number of concurrently
    running streams, it is only read from.
    """

    BASE_PATH = "metrics"

    def __init__(
        self,
        token: str,
        server_address: str = DEFAULT_METRICS_SERVER_ADDRESS,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        verify: bool = True,
        version: str = "v1",
    ):
        self._token = token
        self._server_address = server_address.rstrip("/")
        self._verify = verify
        self._version = version
        super().__init__(timeout)

    def _init_session(self) -> None:
        self._session = requests.Session()
        self._session.verify = self._verify
        self._session.headers.update(
            {
                "Authorization": f"Bearer {self._token}",
                "User-Agent": f"task-metrics-publisher/{__version__}",
            }
        )

    def get_base_url(self) -> str:
        return f"{self._server_address}/{self.BASE_PATH}/{self._version}"

    def put_metric_data(self, namespace: str, metric_data: Sequence[MetricDatum]) -> Dict:
        return self._request_url(
            "POST", f"{self.get_base_url()}/put", bake_metric_data_payload(namespace, metric_data)
        )


def bake_metric_data_payload(namespace: str, metric_data: Sequence[MetricDatum]) -> Dict[str, Any]:
    batch: List[Dict[str, Any]] = [datum.to_payload() for datum in metric_data]
    return {
        "Namespace": namespace,
        "MetricData": batch,
    }
