"""
Google OAuth 2.0 authentication shared by the Gmail and Calendar servers.
Handles token persistence, silent refresh and the interactive
authorization-code flow (loopback redirect, browser launch, manual fallback).
"""

import json
import logging
import os
import secrets
import sys
import time
import webbrowser
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from bttk_mcp.utils.exceptions import AuthenticationError
from bttk_mcp.utils.retry import retry_on_transient_error

logger = logging.getLogger(__name__)

CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
GMAIL_READONLY_SCOPE = "https://www.googleapis.com/auth/gmail.readonly"

# One token file serves both servers, so both scopes are always requested.
# If these change, delete the saved token file.
DEFAULT_SCOPES = [CALENDAR_SCOPE, GMAIL_READONLY_SCOPE]

DEFAULT_AUTH_TIMEOUT = 300.0

SUCCESS_MESSAGE = "Authentication successful! You can check the terminal now."
FAILURE_MESSAGE = "Authentication failed. No code found."


class _CallbackHandler(BaseHTTPRequestHandler):
    """Captures the authorization redirect sent to the loopback listener."""

    # idle connections (browser preconnects) are dropped so the deadline is re-checked
    timeout = 5

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path not in ("", "/"):
            # favicon and friends
            self.send_response(404)
            self.end_headers()
            return

        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        self.server.callback_params = params

        body = SUCCESS_MESSAGE if params.get("code") else FAILURE_MESSAGE
        self.send_response(200)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.end_headers()
        self.wfile.write(body.encode("utf-8"))

    def log_message(self, format, *args):
        logger.debug("OAuth callback: " + format % args)


class _CallbackServer(HTTPServer):
    callback_params: Optional[Dict[str, str]] = None


def load_client_config(credentials_file: Path) -> Dict[str, Any]:
    """
    Read the OAuth client secret file downloaded from Google Cloud Console.

    Args:
        credentials_file: Path to credentials.json

    Returns:
        Parsed client config ("installed" or "web" section)

    Raises:
        AuthenticationError: If the file cannot be read or is not a client config
    """
    try:
        with open(credentials_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise AuthenticationError(
            f"unable to read client secret file: {e}", auth_method="oauth"
        ) from e
    except json.JSONDecodeError as e:
        raise AuthenticationError(
            f"unable to parse client secret file to config: {e}", auth_method="oauth"
        ) from e

    if not isinstance(data, dict) or not ({"installed", "web"} & data.keys()):
        raise AuthenticationError(
            "unable to parse client secret file to config: "
            "expected an 'installed' or 'web' section",
            auth_method="oauth"
        )
    return data


def _parse_expiry(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC3339 expiry (any precision/offset) into naive UTC."""
    if not value:
        return None
    text = value.strip().replace("Z", "+00:00")
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        while rest and rest[0].isdigit():
            digits, rest = digits + rest[0], rest[1:]
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class OAuthAuth:
    """
    OAuth 2.0 authentication for user-specific access.
    Loads, refreshes and persists the token, running the browser flow when needed.
    """

    def __init__(
        self,
        client_config: Dict[str, Any],
        token_path: Path,
        scopes: Optional[List[str]] = None,
        timeout: float = DEFAULT_AUTH_TIMEOUT,
        open_browser: Callable[[str], bool] = webbrowser.open
    ):
        """
        Initialize OAuth authentication.

        Args:
            client_config: Parsed client secret file
            token_path: Path to store/load token
            scopes: List of OAuth scopes to request
            timeout: Seconds to wait for the browser redirect
            open_browser: Callable launching a browser on a URL
        """
        self.client_config = client_config
        self.token_path = Path(token_path)
        self.scopes = list(scopes or DEFAULT_SCOPES)
        self.timeout = timeout
        self.open_browser = open_browser

    @classmethod
    def from_files(
        cls,
        credentials_file: str,
        token_file: str,
        scopes: Optional[List[str]] = None,
        **kwargs
    ) -> "OAuthAuth":
        """
        Create OAuthAuth from the client secret and token file locations.

        Raises:
            AuthenticationError: If the client secret file is unusable
        """
        return cls(
            client_config=load_client_config(Path(credentials_file)),
            token_path=Path(token_file),
            scopes=scopes,
            **kwargs
        )

    @property
    def _client_section(self) -> Dict[str, Any]:
        return self.client_config.get("installed") or self.client_config.get("web") or {}

    def get_credentials(self, interactive: bool = True) -> Credentials:
        """
        Return valid credentials, refreshing or re-authorizing as needed.

        Args:
            interactive: Allow the browser flow when no usable token exists

        Returns:
            Valid OAuth credentials

        Raises:
            AuthenticationError: If no valid credentials can be obtained
        """
        creds = self._load_token()

        if creds is not None and not creds.has_scopes(self.scopes):
            logger.warning("Saved token does not cover the requested scopes, re-authorizing")
            creds = None

        if creds is not None and not creds.valid:
            old_token = creds.token
            if creds.refresh_token and self._refresh(creds):
                if creds.token != old_token:
                    self._save_token(creds)
            else:
                creds = None

        if creds is not None:
            return creds

        if not interactive:
            raise AuthenticationError(
                f"No valid token at {self.token_path}. Run the auth command first.",
                auth_method="oauth"
            )

        creds = self.run_web_flow()
        self._save_token(creds)
        return creds

    def _refresh(self, creds: Credentials) -> bool:
        """Refresh in place; False when the refresh token was rejected."""
        try:
            self._do_refresh(creds)
            return True
        except (RefreshError, TransportError) as e:
            logger.warning(f"Unable to refresh token: {e}")
            return False

    @retry_on_transient_error(max_attempts=3)
    def _do_refresh(self, creds: Credentials) -> None:
        creds.refresh(Request())

    def run_web_flow(self) -> Credentials:
        """
        Obtain a new token through the authorization-code flow.

        A loopback listener receives the redirect; when it cannot be bound
        the code is typed in by the user instead.

        Returns:
            Fresh credentials

        Raises:
            AuthenticationError: If no code is received or the exchange fails
        """
        try:
            httpd = _CallbackServer(("127.0.0.1", 0), _CallbackHandler)
        except OSError as e:
            logger.warning(f"Unable to create listener: {e}")
            return self._run_manual_flow()

        with httpd:
            host, port = httpd.server_address[:2]
            flow = self._build_flow(f"http://{host}:{port}/")
            auth_url, state = flow.authorization_url(
                access_type="offline",
                prompt="consent",
                state=secrets.token_urlsafe(16)
            )

            self._notify(f"Opening browser to visit:\n{auth_url}")
            try:
                opened = self.open_browser(auth_url)
            except webbrowser.Error as e:
                logger.warning(f"Unable to open browser: {e}")
                opened = False
            if not opened:
                self._notify("Unable to open browser. Please open the link manually.")

            params = self._wait_for_callback(httpd)

        if params.get("state") != state:
            raise AuthenticationError("OAuth state mismatch in redirect", auth_method="oauth")
        code = params.get("code")
        if not code:
            detail = params.get("error", "no code in redirect")
            raise AuthenticationError(f"failed to receive auth code: {detail}", auth_method="oauth")

        return self._exchange_code(flow, code)

    def _wait_for_callback(self, httpd: _CallbackServer) -> Dict[str, str]:
        deadline = time.monotonic() + self.timeout
        while httpd.callback_params is None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AuthenticationError(
                    f"failed to receive auth code: timed out after {self.timeout:.0f}s",
                    auth_method="oauth"
                )
            httpd.timeout = remaining
            httpd.handle_request()
        return httpd.callback_params

    def _run_manual_flow(self) -> Credentials:
        redirect_uris = self._client_section.get("redirect_uris") or ["http://localhost"]
        flow = self._build_flow(redirect_uris[0])
        auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")

        if not sys.stdin.isatty():
            raise AuthenticationError(
                "Cannot prompt for an authorization code: stdin is not a terminal. "
                f"Authorize manually at {auth_url}",
                auth_method="oauth"
            )

        self._notify(
            "Go to the following link in your browser then type the authorization code:\n"
            f"{auth_url}"
        )
        code = sys.stdin.readline().strip()
        if not code:
            raise AuthenticationError("Unable to read authorization code", auth_method="oauth")
        return self._exchange_code(flow, code)

    def _build_flow(self, redirect_uri: str) -> Flow:
        flow = Flow.from_client_config(self.client_config, scopes=self.scopes)
        flow.redirect_uri = redirect_uri
        return flow

    def _exchange_code(self, flow: Flow, code: str) -> Credentials:
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            raise AuthenticationError(
                f"Unable to retrieve token from web: {e}", auth_method="oauth"
            ) from e
        return flow.credentials

    def _load_token(self) -> Optional[Credentials]:
        """Load token from file; None when absent or unreadable."""
        if not self.token_path.exists():
            return None

        try:
            with open(self.token_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable token file {self.token_path}: {e}")
            return None

        try:
            if "access_token" in data and "token" not in data:
                return self._credentials_from_legacy(data)
            return Credentials.from_authorized_user_info(data)
        except (ValueError, KeyError) as e:
            logger.warning(f"Ignoring invalid token file {self.token_path}: {e}")
            return None

    def _credentials_from_legacy(self, data: Dict[str, Any]) -> Credentials:
        """Build credentials from a bare oauth2 token (access_token/expiry/...)."""
        section = self._client_section
        return Credentials(
            token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            token_uri=section.get("token_uri", "https://oauth2.googleapis.com/token"),
            client_id=section.get("client_id"),
            client_secret=section.get("client_secret"),
            scopes=self.scopes,
            expiry=_parse_expiry(data.get("expiry")),
        )

    def _save_token(self, credentials: Credentials) -> None:
        """Save token to file, readable by the owner only."""
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Saving credential file to: {self.token_path}")

        fd = os.open(self.token_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(credentials.to_json())

    @staticmethod
    def _notify(message: str) -> None:
        # stdout belongs to the MCP transport
        print(message, file=sys.stderr, flush=True)


def get_credentials(
    credentials_file: str,
    token_file: str,
    scopes: Optional[List[str]] = None,
    interactive: bool = True,
    timeout: float = DEFAULT_AUTH_TIMEOUT
) -> Credentials:
    """
    Get valid Google credentials for the given client secret and token files.

    Args:
        credentials_file: OAuth client secret file
        token_file: Where the user token is cached
        scopes: Scopes to request (defaults to Calendar + Gmail read-only)
        interactive: Allow the browser flow
        timeout: Seconds to wait for the browser redirect

    Returns:
        Valid OAuth credentials

    Raises:
        AuthenticationError: If credentials cannot be obtained
    """
    auth = OAuthAuth.from_files(credentials_file, token_file, scopes=scopes, timeout=timeout)
    return auth.get_credentials(interactive=interactive)
