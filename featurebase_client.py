"""Async client for the Featurebase REST API.

Thin passthrough: every tool maps to one verb + path + JSON body. Non-2xx
responses raise FeaturebaseError with the server's own message.
"""

import logging
from typing import Any, Optional

import httpx

from config import DEFAULT_API_URL, DEFAULT_API_VERSION

logger = logging.getLogger(__name__)


class FeaturebaseError(Exception):
    """A Featurebase API call failed."""

    def __init__(self, method: str, path: str, status_code: int, detail: str):
        self.method = method
        self.path = path
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Featurebase API {method} {path} failed ({status_code}): {detail}")


def _clean_query(query: Optional[dict]) -> dict:
    """Drop unset values; booleans are sent as true/false."""
    if not query:
        return {}
    params = {}
    for key, value in query.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        params[key] = value
    return params


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        detail = data.get("message") or data.get("error")
        if detail:
            return str(detail)
    return response.text


class FeaturebaseClient:
    """Bearer-authenticated JSON client.

    Args:
        api_key: Featurebase API key.
        base_url: API root, without trailing slash.
        api_version: Sent as the ``Featurebase-Version`` header.
        http_client: Optional preconfigured ``httpx.AsyncClient`` (tests pass
            one with a mock transport).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_URL,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Featurebase-Version": self.api_version,
            "Content-Type": "application/json",
        }

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        query: Optional[dict] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.request(
                method,
                url,
                headers=self.headers(),
                params=_clean_query(query),
                json=body,
            )
        except httpx.HTTPError as e:
            logger.warning(f"[API] {method} {path} transport error: {e}")
            raise FeaturebaseError(method, path, 0, str(e)) from e

        if response.is_error:
            detail = _error_detail(response)
            logger.info(f"[API] {method} {path} -> {response.status_code}")
            raise FeaturebaseError(method, path, response.status_code, detail)

        logger.debug(f"[API] {method} {path} -> {response.status_code}")
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, query: Optional[dict] = None) -> Any:
        return await self.request("GET", path, query=query)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request("POST", path, body=body)

    async def put(self, path: str, body: Any = None) -> Any:
        return await self.request("PUT", path, body=body)

    async def patch(self, path: str, body: Any = None) -> Any:
        return await self.request("PATCH", path, body=body)

    async def delete(self, path: str, query: Optional[dict] = None, body: Any = None) -> Any:
        return await self.request("DELETE", path, body=body, query=query)

    async def aclose(self) -> None:
        await self._http.aclose()
