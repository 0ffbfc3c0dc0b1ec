"""
Pytest configuration and fixtures for testing.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

from bttk_mcp.obsidian import ObsidianClient
from bttk_mcp.utils import config_loader
from bttk_mcp.utils.google_auth import DEFAULT_SCOPES

OBSIDIAN_URL = "https://127.0.0.1:27124"
OBSIDIAN_TOKEN = "secret-token"


@pytest.fixture(autouse=True)
def reset_settings():
    """Drop cached settings so environment changes apply per test."""
    config_loader._settings = None
    yield
    config_loader._settings = None


@pytest.fixture
def restore_root_logger():
    """Undo handler changes made by setup_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def recorded_requests() -> List[httpx.Request]:
    return []


@pytest.fixture
def obsidian_client_factory(recorded_requests) -> Callable[..., ObsidianClient]:
    """
    Build an ObsidianClient whose requests are answered by handler.

    Every request is also appended to recorded_requests.
    """
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> ObsidianClient:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return handler(request)

        return ObsidianClient(
            OBSIDIAN_URL,
            OBSIDIAN_TOKEN,
            verify=False,
            transport=httpx.MockTransport(recording_handler)
        )

    return factory


@pytest.fixture
def client_config() -> dict:
    return {
        "installed": {
            "client_id": "test-client-id.apps.googleusercontent.com",
            "client_secret": "test-client-secret",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": ["http://localhost"],
        }
    }


@pytest.fixture
def credentials_file(tmp_path: Path, client_config: dict) -> Path:
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps(client_config), encoding="utf-8")
    return path


@pytest.fixture
def token_info() -> Callable[..., dict]:
    """Factory for token file contents as written by google-auth."""
    def build(
        token: str = "access-token",
        expires_in: timedelta = timedelta(hours=1),
        scopes: List[str] = DEFAULT_SCOPES
    ) -> dict:
        expiry = datetime.now(timezone.utc).replace(tzinfo=None) + expires_in
        return {
            "token": token,
            "refresh_token": "refresh-token",
            "token_uri": "https://oauth2.googleapis.com/token",
            "client_id": "test-client-id.apps.googleusercontent.com",
            "client_secret": "test-client-secret",
            "scopes": list(scopes),
            "expiry": expiry.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }

    return build
