"""HTTP adapter for the GitHub repository contents API."""
from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..errors import HostAuthError, HostError, HostNotFoundError
from ..models import DEFAULT_API_URL

API_VERSION = "2022-11-28"


class GitHubClient:
    """
    HTTP client adapter for repository host calls.

    Implements IRepositoryHost protocol. One instance per token; every call
    is a single round trip, failures are raised, never retried.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = token
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _contents_endpoint(owner: str, repo: str, path: str) -> str:
        return f"/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path, safe='/')}"

    async def get_content(self, owner: str, repo: str, path: str, branch: str) -> Any:
        response = await self._request(
            "GET",
            self._contents_endpoint(owner, repo, path),
            params={"ref": branch},
        )
        return response.json()

    async def create_or_update_content(
        self,
        owner: str,
        repo: str,
        path: str,
        message: str,
        content: str,
        branch: str,
    ) -> Dict[str, Any]:
        response = await self._request(
            "PUT",
            self._contents_endpoint(owner, repo, path),
            json={"message": message, "content": content, "branch": branch},
        )
        return response.json()

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        response = await self._request("GET", f"/repos/{quote(owner)}/{quote(repo)}")
        return response.json()

    async def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        if not self._client:
            raise RuntimeError("GitHubClient not initialized. Use 'async with' context.")

        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as exc:
            raise HostError(f"{method} {endpoint} failed: {exc}") from exc

        if response.status_code >= 400:
            detail = _error_detail(response)
            if response.status_code == 404:
                raise HostNotFoundError(detail, status_code=404)
            if response.status_code in (401, 403):
                raise HostAuthError(detail, status_code=response.status_code)
            raise HostError(detail, status_code=response.status_code)

        return response


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    text = response.text.strip()
    return text or f"HTTP {response.status_code}"
