from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from nacl.public import PrivateKey, SealedBox

from action_credentials import config
from action_credentials.logging_utils import AUDIT_LOGGER_NAME

ACCESS_TOKEN = "sk-ant-oat01-" + "A1b2C3d4E5" * 4
REFRESH_TOKEN = "sk-ant-ort01-" + "Z9y8X7w6V5" * 4
NEW_ACCESS_TOKEN = "sk-ant-oat01-" + "NewAccess9" * 4
NEW_REFRESH_TOKEN = "sk-ant-ort01-" + "NewRefresh" * 4

TOKEN_URL = "https://provider.test/api/oauth/token"
GITHUB_API_URL = "https://github.test"
REPOSITORY = "octo-org/octo-repo"

_OAUTH_ENV = (
    "CLAUDE_ACCESS_TOKEN",
    "CLAUDE_REFRESH_TOKEN",
    "CLAUDE_EXPIRES_AT",
    "GITHUB_TOKEN",
    "GITHUB_REPOSITORY",
    "GITHUB_API_URL",
    "GITHUB_ACTIONS",
    "GITHUB_ACTOR",
    "GITHUB_RUN_ID",
    "GITHUB_OUTPUT",
    "GITHUB_STEP_SUMMARY",
    "OAUTH_TOKEN_URL",
    "OAUTH_REFRESH_BUFFER_MINUTES",
    "OAUTH_REFRESH_MIN_INTERVAL_SECONDS",
    "USE_OAUTH",
    "CUSTOM_INSTRUCTIONS",
    "ALLOWED_TOOLS",
    "MODEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _OAUTH_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()


@pytest.fixture(autouse=True)
def _reset_audit_logger() -> None:
    yield
    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    audit_logger.handlers.clear()
    audit_logger.propagate = True
    audit_logger.setLevel(logging.NOTSET)


@dataclass
class FakeBackend:
    """In-memory token endpoint and GitHub API behind ``httpx.MockTransport``."""

    private_key: PrivateKey = field(default_factory=PrivateKey.generate)
    key_id: str = "key-123"
    token_status: int = 200
    token_body: Any = field(
        default_factory=lambda: {
            "access_token": NEW_ACCESS_TOKEN,
            "refresh_token": NEW_REFRESH_TOKEN,
            "expires_at": 4_102_444_800,
        }
    )
    public_key_status: int = 200
    failing_secrets: dict[str, int] = field(default_factory=dict)
    existing_paths: set[str] = field(default_factory=set)
    existing_secrets: set[str] = field(default_factory=set)
    actions_enabled: bool = True
    contents_status: int = 201
    requests: list[httpx.Request] = field(default_factory=list)
    stored_secrets: dict[str, dict[str, str]] = field(default_factory=dict)
    created_files: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def public_key(self) -> str:
        return base64.b64encode(bytes(self.private_key.public_key)).decode("ascii")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.host == host]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "provider.test":
            return self._token(request)
        if request.url.host == "github.test":
            return self._github(request)
        return httpx.Response(599)

    def _token(self, request: httpx.Request) -> httpx.Response:
        if isinstance(self.token_body, (dict, list)):
            return httpx.Response(self.token_status, json=self.token_body)
        return httpx.Response(self.token_status, content=str(self.token_body).encode())

    def _github(self, request: httpx.Request) -> httpx.Response:
        prefix = f"/repos/{REPOSITORY}"
        path = request.url.path
        if not path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not Found"})
        path = path[len(prefix):]

        if path == "/actions/secrets/public-key":
            if self.public_key_status != 200:
                return httpx.Response(self.public_key_status, json={"message": "nope"})
            return httpx.Response(200, json={"key": self.public_key, "key_id": self.key_id})

        if path.startswith("/actions/secrets/") and request.method == "PUT":
            name = path.rsplit("/", 1)[1]
            if name in self.failing_secrets:
                return httpx.Response(self.failing_secrets[name], json={"message": "denied"})
            self.stored_secrets[name] = json.loads(request.content)
            return httpx.Response(204)

        if path == "/actions/secrets":
            return httpx.Response(
                200,
                json={
                    "total_count": len(self.existing_secrets),
                    "secrets": [{"name": name} for name in sorted(self.existing_secrets)],
                },
            )

        if path == "/actions/permissions":
            return httpx.Response(200, json={"enabled": self.actions_enabled})

        if path.startswith("/contents/"):
            file_path = path[len("/contents/"):]
            if request.method == "GET":
                if file_path in self.existing_paths:
                    return httpx.Response(200, json={"path": file_path})
                return httpx.Response(404, json={"message": "Not Found"})
            if request.method == "PUT":
                if self.contents_status >= 400:
                    return httpx.Response(
                        self.contents_status, json={"message": "Resource not accessible"}
                    )
                self.created_files[file_path] = json.loads(request.content)
                self.existing_paths.add(file_path)
                return httpx.Response(self.contents_status, json={"content": {"path": file_path}})

        return httpx.Response(404, json={"message": "Not Found"})

    def decrypt_secret(self, name: str) -> str:
        sealed = base64.b64decode(self.stored_secrets[name]["encrypted_value"])
        return SealedBox(self.private_key).decrypt(sealed).decode("utf-8")


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
