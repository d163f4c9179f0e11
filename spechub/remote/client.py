"""
Spec Hub HTTP Client

Async client for the Postman API resources this tool manages: specs,
collections (plus tags and spec generations/synchronizations) and
environments. All calls are JSON over HTTPS, authenticated with `X-Api-Key`.

Every non-2xx response becomes RemoteServiceError carrying the status code
and decoded body; transport failures become RemoteServiceError with status 0.
Nothing here retries.

Usage:
    from spechub.remote.client import SpecHubClient

    async with SpecHubClient(api_key, workspace_id) as client:
        specs = await client.list_specs()
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from spechub.core.config import Settings
from spechub.core.errors import RemoteServiceError, UidMissingError
from spechub.core.metrics import remote_requests
from spechub.remote.identifiers import (
    CollectionUid,
    EnvironmentUid,
    GenerationId,
    SpecId,
)

logger = logging.getLogger(__name__)

POSTMAN_API_BASE = "https://api.getpostman.com"


class SpecHubClient:
    """
    Async HTTP client for the Postman API.

    `transport` is passed straight to httpx.AsyncClient; tests mount an
    httpx.MockTransport there.
    """

    def __init__(
        self,
        api_key: str,
        workspace_id: str,
        base_url: str = POSTMAN_API_BASE,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.workspace_id = workspace_id
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SpecHubClient":
        return cls(
            api_key=settings.api_key or "",
            workspace_id=settings.workspace_id or "",
            base_url=settings.api_base_url,
            timeout_seconds=settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "SpecHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the pooled HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "X-Api-Key": self.api_key,
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        client = await self._get_client()

        try:
            response = await client.request(method, path, params=params, json=json_data)
        except httpx.HTTPError as e:
            remote_requests.labels(method=method, status="error").inc()
            logger.error(f"Spec Hub connection error on {method} {path}: {e}")
            raise RemoteServiceError(0, str(e), method=method, path=path) from e

        remote_requests.labels(method=method, status=str(response.status_code)).inc()

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = response.text

        if response.is_error:
            body = data.get("error", data) if isinstance(data, dict) else data
            logger.error(f"Spec Hub API error: {method} {path} -> {response.status_code}")
            raise RemoteServiceError(response.status_code, body, method=method, path=path)

        return data if isinstance(data, dict) else {"data": data}

    # =========================================================================
    # Specs
    # =========================================================================

    async def list_specs(self) -> List[Dict[str, Any]]:
        """All specs in the workspace, following `meta.nextCursor` pages."""
        specs: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {"workspaceId": self.workspace_id}
        while True:
            result = await self._request("GET", "/specs", params=params)
            specs.extend(result.get("specs") or [])
            cursor = (result.get("meta") or {}).get("nextCursor")
            if not cursor:
                return specs
            params = {"workspaceId": self.workspace_id, "cursor": cursor}

    async def get_spec(self, spec_id: SpecId) -> Dict[str, Any]:
        return await self._request("GET", f"/specs/{spec_id.value}")

    async def create_spec(
        self,
        name: str,
        content: str,
        spec_type: str = "OPENAPI:3.0",
        file_path: str = "index.json",
    ) -> SpecId:
        payload = {
            "name": name,
            "type": spec_type,
            "files": [{"path": file_path, "content": content}],
        }
        result = await self._request(
            "POST", "/specs", params={"workspaceId": self.workspace_id}, json_data=payload
        )
        if not result.get("id"):
            raise UidMissingError(name, kind="Spec")
        return SpecId(str(result["id"]))

    async def update_spec_file(self, spec_id: SpecId, content: str, file_path: str = "index.json") -> Dict[str, Any]:
        return await self._request(
            "PATCH", f"/specs/{spec_id.value}/files/{file_path}", json_data={"content": content}
        )

    async def delete_spec(self, spec_id: SpecId) -> Dict[str, Any]:
        return await self._request("DELETE", f"/specs/{spec_id.value}")

    # =========================================================================
    # Spec Generations
    # =========================================================================

    async def list_spec_generations(self, spec_id: SpecId) -> List[Dict[str, Any]]:
        """Collections generated from a spec (entries carry the short id)."""
        result = await self._request("GET", f"/specs/{spec_id.value}/generations/collection")
        return result.get("collections") or []

    async def generate_collection(self, spec_id: SpecId, name: str, options: Dict[str, Any]) -> Dict[str, Any]:
        """Start an async generation; the collection appears later."""
        return await self._request(
            "POST",
            f"/specs/{spec_id.value}/generations/collection",
            json_data={"name": name, "options": options},
        )

    async def sync_collection_with_spec(self, generation_id: GenerationId, spec_id: SpecId) -> Dict[str, Any]:
        """Start an async re-sync of a generated collection against its spec."""
        return await self._request(
            "PUT",
            f"/collections/{generation_id.value}/synchronizations",
            params={"specId": spec_id.value},
        )

    # =========================================================================
    # Collections
    # =========================================================================

    async def list_collections(self) -> List[Dict[str, Any]]:
        result = await self._request("GET", "/collections", params={"workspace": self.workspace_id})
        return result.get("collections") or []

    async def get_collection(self, uid: CollectionUid) -> Dict[str, Any]:
        return await self._request("GET", f"/collections/{uid.value}")

    async def get_collection_by_generation_id(self, generation_id: GenerationId) -> Dict[str, Any]:
        """Existence probe used while a synchronization settles."""
        return await self._request("GET", f"/collections/{generation_id.value}")

    async def update_collection(self, uid: CollectionUid, collection: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/collections/{uid.value}", json_data={"collection": collection})

    async def delete_collection(self, uid: CollectionUid) -> Dict[str, Any]:
        return await self._request("DELETE", f"/collections/{uid.value}")

    async def get_collection_tags(self, uid: CollectionUid) -> List[str]:
        result = await self._request("GET", f"/collections/{uid.value}/tags")
        return [t["slug"] for t in result.get("tags") or [] if "slug" in t]

    async def update_collection_tags(self, uid: CollectionUid, tags: List[str]) -> List[str]:
        result = await self._request(
            "PUT",
            f"/collections/{uid.value}/tags",
            json_data={"tags": [{"slug": t} for t in tags]},
        )
        return [t["slug"] for t in result.get("tags") or [] if "slug" in t]

    # =========================================================================
    # Environments
    # =========================================================================

    async def list_environments(self) -> List[Dict[str, Any]]:
        result = await self._request("GET", "/environments", params={"workspace": self.workspace_id})
        return result.get("environments") or []

    async def create_environment(self, environment: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._request(
            "POST",
            "/environments",
            params={"workspace": self.workspace_id},
            json_data={"environment": environment},
        )
        return result.get("environment") or {}

    async def update_environment(self, uid: EnvironmentUid, environment: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._request(
            "PUT", f"/environments/{uid.value}", json_data={"environment": environment}
        )
        return result.get("environment") or {}

    async def delete_environment(self, uid: EnvironmentUid) -> Dict[str, Any]:
        return await self._request("DELETE", f"/environments/{uid.value}")
