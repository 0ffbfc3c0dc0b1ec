"""
Async client for the Obsidian Local REST API plugin.
Wraps httpx with bearer authentication, TLS handling and API error decoding.
"""

import json
import logging
import ssl
from typing import Any, Dict, Optional, Union

import httpx

from bttk_mcp.obsidian.services import (
    ActiveFileService,
    CommandService,
    OpenService,
    PeriodicService,
    SearchService,
    VaultService,
)
from bttk_mcp.utils.config_loader import ObsidianConfig
from bttk_mcp.utils.exceptions import ConfigurationError, ObsidianAPIError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def _ssl_context(cert: str) -> ssl.SSLContext:
    try:
        return ssl.create_default_context(cafile=cert)
    except (OSError, ssl.SSLError) as e:
        raise ConfigurationError(
            f"Unable to load Obsidian certificate {cert}: {e}",
            config_key="obsidian.cert"
        ) from e


class ObsidianClient:
    """
    Client for the Obsidian Local REST API.

    Endpoint groups are exposed as service attributes::

        async with ObsidianClient(url, token, verify=False) as client:
            note = await client.active_file.get_note()
            hits = await client.search.simple("meeting")
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        cert: Optional[str] = None,
        verify: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. https://127.0.0.1:27124
            token: API key from the plugin settings
            cert: CA certificate used to verify the server
            verify: Verify TLS certificates (ignored when cert is given)
            timeout: Request timeout in seconds
            transport: Custom httpx transport

        Raises:
            ConfigurationError: If the certificate cannot be loaded
        """
        if not base_url.endswith("/"):
            base_url += "/"
        self.base_url = base_url

        tls: Union[bool, ssl.SSLContext] = _ssl_context(cert) if cert else verify

        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            verify=tls,
            timeout=timeout,
            transport=transport
        )

        self.active_file = ActiveFileService(self)
        self.vault = VaultService(self)
        self.periodic = PeriodicService(self)
        self.search = SearchService(self)
        self.commands = CommandService(self)
        self.open = OpenService(self)

    @classmethod
    def from_config(cls, config: ObsidianConfig, **kwargs) -> "ObsidianClient":
        """
        Create a client from the obsidian config section.

        Without a certificate, verification is disabled since the plugin
        serves a self-signed one.

        Raises:
            ConfigurationError: If url or apikey is missing
        """
        if not config.url:
            raise ConfigurationError("obsidian.url is not configured", config_key="obsidian.url")
        if not config.apikey:
            raise ConfigurationError("obsidian.apikey is not configured", config_key="obsidian.apikey")

        if config.cert:
            return cls(config.url, config.apikey, cert=config.cert, **kwargs)
        return cls(config.url, config.apikey, verify=False, **kwargs)

    async def __aenter__(self) -> "ObsidianClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        content: Optional[Union[str, bytes]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """
        Send a request relative to the base URL.

        Args:
            method: HTTP method
            path: Already encoded path relative to the API root
            params: Query parameters
            content: Request body
            headers: Extra headers

        Returns:
            Response with a status below 400

        Raises:
            ObsidianAPIError: On transport failure or error status
        """
        logger.debug(f"Obsidian {method} {path}")
        try:
            response = await self._http.request(
                method,
                path,
                params=params,
                content=content,
                headers=headers
            )
        except httpx.HTTPError as e:
            raise ObsidianAPIError(f"request failed: {e}") from e

        if response.status_code >= 400:
            raise self._decode_error(response)
        return response

    async def request_json(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and decode the JSON response body."""
        response = await self.request(method, path, **kwargs)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ObsidianAPIError(
                f"failed to decode response: {e}",
                status_code=response.status_code
            ) from e

    async def request_text(self, method: str, path: str, **kwargs) -> str:
        response = await self.request(method, path, **kwargs)
        return response.text

    @staticmethod
    def _decode_error(response: httpx.Response) -> ObsidianAPIError:
        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None

        if isinstance(body, dict) and body.get("message"):
            return ObsidianAPIError(
                str(body["message"]),
                status_code=response.status_code,
                api_error_code=body.get("errorCode")
            )

        return ObsidianAPIError(
            f"API error: status code {response.status_code}, body: {response.text}",
            status_code=response.status_code
        )
