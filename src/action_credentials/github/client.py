"""Minimal GitHub REST client for repository secrets and contents."""

from __future__ import annotations

import base64
from typing import Any

import httpx

from action_credentials.config import DEFAULT_GITHUB_API_URL
from action_credentials.credentials.models import RepositoryRef, SecretStoreKey
from action_credentials.logging_utils import get_logger
from action_credentials.security.redaction import mask_sensitive_text

logger = get_logger(__name__)

GITHUB_ACCEPT = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"


class GitHubAPIError(Exception):
    """Raised for non-2xx responses and transport failures.

    Only the method, path, status and reason are kept; request and response
    bodies never are.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(mask_sensitive_text(message))
        self.status_code = status_code
        self.reason = reason
        self.detail = mask_sensitive_text(detail) if detail else None


def _error_detail(response: httpx.Response) -> str | None:
    try:
        data: Any = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return None


class GitHubClient:
    """Thin async wrapper over the GitHub REST API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        api_url: str = DEFAULT_GITHUB_API_URL,
        *,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._client = client
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": GITHUB_ACCEPT,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                f"{self._api_url}{path}",
                headers=self._headers(),
                json=json,
                params=params,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"{method} {path} failed: {type(exc).__name__}") from exc

    @staticmethod
    def _raise_for_status(method: str, path: str, response: httpx.Response) -> None:
        if response.is_success:
            return
        raise GitHubAPIError(
            f"{method} {path} failed: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
            reason=response.reason_phrase,
            detail=_error_detail(response),
        )

    async def get_secrets_public_key(self, repo: RepositoryRef) -> SecretStoreKey:
        path = f"/repos/{repo.full_name}/actions/secrets/public-key"
        response = await self._request("GET", path)
        self._raise_for_status("GET", path, response)
        try:
            data = response.json()
            return SecretStoreKey(key=str(data["key"]), key_id=str(data["key_id"]))
        except (ValueError, KeyError, TypeError) as exc:
            raise GitHubAPIError(
                f"GET {path} returned a malformed public key",
                status_code=response.status_code,
            ) from exc

    async def put_secret(
        self, repo: RepositoryRef, name: str, encrypted_value: str, key_id: str
    ) -> None:
        path = f"/repos/{repo.full_name}/actions/secrets/{name}"
        response = await self._request(
            "PUT", path, json={"encrypted_value": encrypted_value, "key_id": key_id}
        )
        self._raise_for_status("PUT", path, response)

    async def list_secret_names(self, repo: RepositoryRef) -> set[str]:
        path = f"/repos/{repo.full_name}/actions/secrets"
        response = await self._request("GET", path, params={"per_page": 100})
        self._raise_for_status("GET", path, response)
        secrets = response.json().get("secrets") or []
        return {item["name"] for item in secrets if isinstance(item, dict) and "name" in item}

    async def path_exists(self, repo: RepositoryRef, file_path: str) -> bool:
        path = f"/repos/{repo.full_name}/contents/{file_path}"
        response = await self._request("GET", path)
        if response.status_code == 404:
            return False
        self._raise_for_status("GET", path, response)
        return True

    async def put_file(
        self,
        repo: RepositoryRef,
        file_path: str,
        content: bytes,
        *,
        message: str,
        committer: dict[str, str] | None = None,
    ) -> None:
        path = f"/repos/{repo.full_name}/contents/{file_path}"
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        if committer:
            body["committer"] = committer
        response = await self._request("PUT", path, json=body)
        self._raise_for_status("PUT", path, response)

    async def actions_enabled(self, repo: RepositoryRef) -> bool:
        """Return True when GitHub Actions is enabled; any failure counts as disabled."""
        path = f"/repos/{repo.full_name}/actions/permissions"
        try:
            response = await self._request("GET", path)
            if not response.is_success:
                return False
            return response.json().get("enabled") is True
        except (GitHubAPIError, ValueError, AttributeError) as exc:
            logger.debug("Actions permission probe failed: %s", exc)
            return False
