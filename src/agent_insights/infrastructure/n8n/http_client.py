"""Concrete n8n REST adapter for workflow metadata and execution listing."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from agent_insights.domain.executions import ExecutionRecord, InvalidExecutionPayloadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class N8nHttpResponse:
    """Normalized HTTP response data returned by transport implementations."""

    status_code: int
    body_bytes: bytes


class N8nHttpTransportPort(Protocol):
    """Transport protocol used by the n8n HTTP adapter."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        timeout_seconds: float,
    ) -> N8nHttpResponse:
        """Execute one HTTP request and return normalized response data."""


class N8nAdapterError(RuntimeError):
    """Raised for normalized n8n adapter failures."""


class N8nApiStatusError(N8nAdapterError):
    """Raised when the n8n API answers with a non-2xx status."""

    def __init__(self, *, status_code: int, body_text: str) -> None:
        super().__init__(f"n8n API error: {status_code} - {body_text}")
        self.status_code = status_code
        self.body_text = body_text


class UrllibN8nHttpTransport:
    """urllib-based async transport implementation for n8n HTTP calls."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        timeout_seconds: float,
    ) -> N8nHttpResponse:
        """Execute HTTP request in a worker thread and normalize HTTP errors."""

        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            timeout_seconds=timeout_seconds,
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        timeout_seconds: float,
    ) -> N8nHttpResponse:
        request = Request(url=url, headers=headers, method=method)
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                return N8nHttpResponse(
                    status_code=int(response.getcode()),
                    body_bytes=response.read(),
                )
        except HTTPError as error:
            return N8nHttpResponse(status_code=int(error.code), body_bytes=error.read())
        except URLError as error:
            raise N8nAdapterError(f"transport connection failure: {error}") from error


class N8nHttpClient:
    """n8n public API adapter scoped to one workflow."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        workflow_id: str,
        transport: N8nHttpTransportPort | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._workflow_id = workflow_id
        self._transport = transport or UrllibN8nHttpTransport()
        self._timeout_seconds = timeout_seconds

    async def get_workflow(self) -> dict[str, object]:
        """Return workflow metadata (`id`, `name`, `active`, ...)."""

        return await self._get_json(
            operation="get_workflow",
            path=f"/workflows/{quote(self._workflow_id, safe='')}",
        )

    async def list_recent_executions(self, limit: int = 100) -> list[ExecutionRecord]:
        """Return up to `limit` most recent executions without execution data.

        The API offers no date filter; callers filter the returned page.
        """

        query = urlencode(
            {"workflowId": self._workflow_id, "limit": str(limit), "includeData": "false"}
        )
        payload = await self._get_json(
            operation="list_recent_executions",
            path=f"/executions?{query}",
        )
        items = payload.get("data")
        if not isinstance(items, list):
            raise N8nAdapterError("list_recent_executions response missing data list")
        executions: list[ExecutionRecord] = []
        for item in items:
            # Queued (`new`) executions have no start time and fall outside every window.
            if isinstance(item, dict) and not item.get("startedAt"):
                logger.debug(
                    "n8n_execution_skipped id=%s status=%s reason=not_started",
                    item.get("id"),
                    item.get("status"),
                )
                continue
            executions.append(_parse_execution(item, operation="list_recent_executions"))
        return executions

    async def get_execution(self, execution_id: str) -> ExecutionRecord:
        """Return one execution by id."""

        payload = await self._get_json(
            operation="get_execution",
            path=f"/executions/{quote(execution_id, safe='')}",
        )
        return _parse_execution(payload, operation="get_execution")

    async def health_check(self) -> bool:
        """Return True when workflow metadata can be fetched."""

        try:
            await self.get_workflow()
        except N8nAdapterError as error:
            logger.warning("n8n_health_check_failed error=%s", error)
            return False
        return True

    async def _get_json(self, *, operation: str, path: str) -> dict[str, object]:
        headers = {
            "X-N8N-API-KEY": self._api_key,
            "Accept": "application/json",
        }
        url = f"{self._base_url}{path}"
        try:
            response = await self._transport.request(
                method="GET",
                url=url,
                headers=headers,
                timeout_seconds=self._timeout_seconds,
            )
        except N8nAdapterError:
            raise
        except Exception as error:  # noqa: BLE001
            raise N8nAdapterError(f"{operation} transport failure") from error

        if response.status_code < 200 or response.status_code >= 300:
            raise N8nApiStatusError(
                status_code=response.status_code,
                body_text=_decode_error_payload(response.body_bytes),
            )

        try:
            decoded = json.loads(response.body_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise N8nAdapterError(f"{operation} returned invalid JSON payload") from error
        if not isinstance(decoded, dict):
            raise N8nAdapterError(f"{operation} returned non-object JSON payload")
        return decoded


def _parse_execution(item: object, *, operation: str) -> ExecutionRecord:
    if not isinstance(item, dict):
        raise N8nAdapterError(f"{operation} returned non-object execution")
    try:
        return ExecutionRecord.from_payload(item)
    except InvalidExecutionPayloadError as error:
        raise N8nAdapterError(f"{operation} returned invalid execution: {error}") from error


def _decode_error_payload(payload: bytes) -> str:
    if not payload:
        return "empty response body"
    try:
        decoded = payload.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary>"
    return decoded[:200]
