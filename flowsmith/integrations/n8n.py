from __future__ import annotations

import logging
from typing import Any

import httpx

from flowsmith.config import settings
from flowsmith.core.exceptions import N8NAPIError

logger = logging.getLogger(__name__)


class N8NClient:
    """Thin async client for the n8n public REST API."""

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = (api_url or str(settings.n8n_api_url)).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.n8n_api_key.get_secret_value()
        self.timeout = timeout or settings.n8n_timeout_seconds
        self.transport = transport
        self.enabled = bool(self.api_key)

    @property
    def base_url(self) -> str:
        if self.api_url.endswith("/api/v1"):
            return self.api_url[: -len("/api/v1")]
        return self.api_url

    def _headers(self) -> dict[str, str]:
        return {
            "X-N8N-API-KEY": self.api_key,
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.api_url}{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    method,
                    url,
                    headers=self._headers(),
                    json=json,
                    params=params,
                )
        except httpx.HTTPError as exc:
            logger.error("n8n %s %s failed: %s", method, endpoint, exc)
            raise N8NAPIError(f"n8n request failed for {endpoint}: {exc}") from exc

        if response.status_code >= 400:
            logger.error("n8n %s %s returned %s: %s", method, endpoint, response.status_code, response.text)
            raise N8NAPIError(
                f"n8n API error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            return {}
        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    async def create_workflow(self, definition: dict[str, Any]) -> dict[str, Any]:
        logger.info("Creating n8n workflow %r", definition.get("name"))
        return await self._request("POST", "/workflows", json=definition)

    async def get_workflow(self, workflow_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/workflows/{workflow_id}")

    async def update_workflow(self, workflow_id: str, definition: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", f"/workflows/{workflow_id}", json=definition)

    async def activate_workflow(self, workflow_id: str) -> dict[str, Any]:
        logger.info("Activating n8n workflow %s", workflow_id)
        return await self._request("POST", f"/workflows/{workflow_id}/activate")

    async def deactivate_workflow(self, workflow_id: str) -> dict[str, Any]:
        logger.info("Deactivating n8n workflow %s", workflow_id)
        return await self._request("POST", f"/workflows/{workflow_id}/deactivate")

    async def list_executions(self, workflow_id: str, limit: int = 10) -> list[dict[str, Any]]:
        body = await self._request(
            "GET",
            "/executions",
            params={"workflowId": workflow_id, "limit": limit},
        )
        if isinstance(body, dict):
            return list(body.get("data") or [])
        if isinstance(body, list):
            return body
        return []

    async def execute_workflow(self, workflow_id: str, payload: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", f"/workflows/{workflow_id}/execute", json={"data": payload or {}})

    async def ping(self) -> bool:
        try:
            await self._request("GET", "/workflows", params={"limit": 1})
            return True
        except N8NAPIError:
            return False


n8n_client = N8NClient()
