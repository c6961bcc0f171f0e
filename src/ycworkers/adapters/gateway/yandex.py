"""Yandex Cloud Compute gateway over the REST API.

Every call goes through with_retry with the "cloud" circuit breaker;
failures that survive it are raised as CloudGatewayError (provider
rejected the call) or TransientGatewayError (provider unreachable).
"""

import logging
import time
from typing import Any, Literal

import httpx

from ycworkers.app.config import GatewayConfig
from ycworkers.app.metrics.collector import CLOUD_API_DURATION, CLOUD_API_ERRORS_TOTAL
from ycworkers.core.circuit_breaker import CircuitOpenError, configure_circuit_breaker
from ycworkers.core.errors import CloudGatewayError, TransientGatewayError
from ycworkers.core.interfaces.gateway import CloudGateway
from ycworkers.core.logging_schema import Component, LogEvent
from ycworkers.core.models.instance import CloudInstance, OperationResult
from ycworkers.core.retryable import classify_error, error_class_of, is_status_retryable, with_retry

logger = logging.getLogger(__name__)

CIRCUIT_NAME = "cloud"


def _provider_message(resp: httpx.Response) -> str:
    """Error message from a Compute API error body, falling back to the status line."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {resp.status_code} {resp.reason_phrase}".strip()


class YandexCloudGateway(CloudGateway):
    """CloudGateway backed by compute.api.cloud.yandex.net.

    Args:
        config: Endpoint, token and retry settings
        folder_id: Folder listed by list_instances
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        config: GatewayConfig,
        folder_id: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._folder_id = folder_id
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        configure_circuit_breaker(
            CIRCUIT_NAME,
            failure_threshold=config.failure_threshold,
            timeout=config.recovery_timeout,
            error_classifier=classify_error,
        )

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.iam_token:
            headers["Authorization"] = f"Bearer {self._config.iam_token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.endpoint,
                headers=self._get_headers(),
                timeout=self._config.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: Literal["GET", "POST", "DELETE"],
        path: str,
        *,
        operation: str,
        on_404: Literal["raise", "none"] = "raise",
        **kwargs: Any,
    ) -> httpx.Response | None:
        """Send one request with transport retry.

        Returns:
            Response, or None on 404 when on_404="none"
        """
        client = await self._get_client()

        async def send() -> httpx.Response | None:
            resp = await client.request(method, path, **kwargs)
            if resp.status_code == 404 and on_404 == "none":
                return None
            resp.raise_for_status()
            return resp

        start = time.monotonic()
        try:
            return await with_retry(
                send,
                max_retries=self._config.max_retries,
                base_delay=self._config.base_delay,
                max_delay=self._config.max_delay,
                circuit_breaker=CIRCUIT_NAME,
            )
        except CircuitOpenError as exc:
            self._record_error(operation, exc)
            raise TransientGatewayError(str(exc)) from exc
        except httpx.HTTPStatusError as exc:
            self._record_error(operation, exc)
            message = _provider_message(exc.response)
            if is_status_retryable(exc.response.status_code):
                raise TransientGatewayError(message) from exc
            raise CloudGatewayError(message) from exc
        except httpx.HTTPError as exc:
            self._record_error(operation, exc)
            raise TransientGatewayError(f"{operation}: {exc}") from exc
        finally:
            CLOUD_API_DURATION.labels(operation=operation).observe(time.monotonic() - start)

    def _record_error(self, operation: str, exc: Exception) -> None:
        error_class = error_class_of(exc)
        CLOUD_API_ERRORS_TOTAL.labels(operation=operation, error_class=error_class).inc()
        logger.warning(
            "Compute API %s failed: %s",
            operation,
            exc,
            extra={
                "event": LogEvent.GATEWAY_ERROR,
                "component": Component.GATEWAY,
                "operation": operation,
                "error_class": error_class,
            },
        )

    # =========================================================================
    # CloudGateway interface
    # =========================================================================

    async def list_instances(self, instance_filter: str) -> list[CloudInstance]:
        """List every page of instances in the folder matching the filter."""
        instances: list[CloudInstance] = []
        params: dict[str, Any] = {
            "folderId": self._folder_id,
            "filter": instance_filter,
            "pageSize": self._config.page_size,
        }
        while True:
            resp = await self._request("GET", "/instances", operation="list", params=params)
            data = resp.json()
            instances.extend(CloudInstance.from_api(item) for item in data.get("instances", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return instances
            params = {**params, "pageToken": page_token}

    async def get_instance(self, instance_id: str) -> CloudInstance | None:
        resp = await self._request("GET", f"/instances/{instance_id}", operation="get", on_404="none")
        if resp is None:
            return None
        return CloudInstance.from_api(resp.json())

    async def start_instance(self, instance_id: str) -> None:
        await self._request("POST", f"/instances/{instance_id}:start", operation="start")

    async def create_instance(self, request: dict[str, Any]) -> OperationResult:
        resp = await self._request("POST", "/instances", operation="create", json=request)
        return OperationResult.from_api(resp.json())

    async def delete_instance(self, instance_id: str) -> None:
        """Delete an instance. An instance that is already gone is not an error."""
        resp = await self._request(
            "DELETE", f"/instances/{instance_id}", operation="delete", on_404="none"
        )
        if resp is None:
            logger.info(
                "Instance %s already deleted",
                instance_id,
                extra={"event": LogEvent.INSTANCE_TERMINATED, "instance_id": instance_id},
            )
