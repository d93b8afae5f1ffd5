"""REST client for a remote platform's content endpoints."""
import logging
from typing import Any, Optional

import httpx

from cms_bridge.services.error_normalizer import normalize_error, normalize_response
from cms_bridge.services.platforms import PlatformProfile
from cms_bridge.utils.exceptions import RemotePlatformError

logger = logging.getLogger(__name__)


def first_record(payload: Any) -> Optional[dict]:
    """Pick the first record from a list, a `{"data"|"items": [...]}` envelope, or a single object."""
    if isinstance(payload, list):
        return payload[0] if payload else None
    if isinstance(payload, dict):
        for key in ("data", "items", "results"):
            if isinstance(payload.get(key), list):
                records = payload[key]
                return records[0] if records else None
        return payload or None
    return None


def _json_or_empty(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


class RemotePlatformClient:
    """Find, create, update and delete content records on one platform."""

    def __init__(
        self,
        profile: PlatformProfile,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.profile = profile
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.client = client

    @property
    def platform(self) -> str:
        return self.profile.name

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.profile.user_agent,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _item_url(self, remote_id: Any) -> str:
        return self.base_url + self.profile.item_path.format(remote_id=remote_id)

    def _wrap(self, body: dict) -> dict:
        if self.profile.body_wrapper:
            return {self.profile.body_wrapper: body}
        return body

    async def _request(
        self,
        method: str,
        url: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        try:
            if self.client is not None:
                response = await self.client.request(
                    method, url, json=json, params=params,
                    headers=self._headers(), timeout=self.timeout,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method, url, json=json, params=params, headers=self._headers()
                    )
        except httpx.RequestError as e:
            normalized = normalize_error(e, self.platform)
            logger.warning(f"{self.platform} {method} {url} failed: {normalized.message}")
            raise RemotePlatformError(self.platform, normalized)

        if not response.is_success:
            normalized = normalize_response(response, self.platform)
            logger.warning(
                f"{self.platform} {method} {url} returned {response.status_code}: {normalized.message}"
            )
            raise RemotePlatformError(self.platform, normalized)

        return response

    def remote_id_of(self, record: Optional[dict]) -> Any:
        if not isinstance(record, dict):
            return None
        remote_id = record.get(self.profile.remote_id_field)
        if remote_id is None:
            remote_id = record.get("id")
        return remote_id

    async def find_by_cms_id(self, cms_id: str) -> Optional[dict]:
        """Look up the remote record that carries this CMS id; None if there is none."""
        try:
            response = await self._request(
                "GET",
                self.base_url + self.profile.collection_path,
                params=self.profile.lookup_param(cms_id),
            )
        except RemotePlatformError as e:
            if e.normalized.is_not_found:
                return None
            raise

        try:
            payload = response.json()
        except ValueError:
            return None
        return first_record(payload)

    async def create(self, body: dict) -> dict:
        response = await self._request(
            "POST", self.base_url + self.profile.collection_path, json=self._wrap(body)
        )
        return _json_or_empty(response)

    async def update(self, remote_id: Any, body: dict) -> dict:
        response = await self._request(
            self.profile.policy.update_method, self._item_url(remote_id), json=self._wrap(body)
        )
        return _json_or_empty(response)

    async def delete(self, remote_id: Any) -> None:
        await self._request("DELETE", self._item_url(remote_id))

    async def test_connection(self) -> dict:
        """Call the platform's health endpoint."""
        if not self.profile.health_path:
            return {"success": False, "message": f"No health endpoint for {self.platform}"}

        try:
            response = await self._request("GET", self.base_url + self.profile.health_path)
        except RemotePlatformError as e:
            return {
                "success": False,
                "error": e.normalized.message,
                "message": f"Failed to connect to {self.platform}",
            }

        return {
            "success": True,
            "data": _json_or_empty(response),
            "message": f"Successfully connected to {self.platform}",
        }
