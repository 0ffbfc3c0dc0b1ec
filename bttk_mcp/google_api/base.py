"""
Shared plumbing for Google API clients.
"""

import logging
from typing import Any, List, Optional

from google.auth.exceptions import TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from bttk_mcp.utils.config_loader import get_settings
from bttk_mcp.utils.exceptions import GoogleAPIError
from bttk_mcp.utils.google_auth import get_credentials
from bttk_mcp.utils.retry import retry_on_transient_error

logger = logging.getLogger(__name__)


def build_service(
    api: str,
    version: str,
    credentials_file: str,
    token_file: str,
    scopes: Optional[List[str]] = None,
    interactive: bool = True
) -> Any:
    """
    Authorize and build a Google API service.

    Args:
        api: API name, e.g. "gmail"
        version: API version, e.g. "v1"
        credentials_file: OAuth client secret file
        token_file: Cached user token
        scopes: Scopes to request
        interactive: Allow the browser flow

    Returns:
        googleapiclient Resource

    Raises:
        AuthenticationError: If credentials cannot be obtained
    """
    creds = get_credentials(
        credentials_file,
        token_file,
        scopes=scopes,
        interactive=interactive,
        timeout=get_settings().oauth_timeout_seconds
    )
    logger.info(f"Building {api} {version} service")
    return build(api, version, credentials=creds, cache_discovery=False)


@retry_on_transient_error(max_attempts=3)
def _execute_with_retry(request: Any) -> Any:
    return request.execute()


def execute(request: Any, action: str) -> Any:
    """
    Execute an API request, retrying transient failures.

    Args:
        request: googleapiclient HttpRequest
        action: Failure description, e.g. "list messages"

    Returns:
        Decoded response

    Raises:
        GoogleAPIError: "unable to <action>: <cause>"
    """
    try:
        return _execute_with_retry(request)
    except HttpError as e:
        raise GoogleAPIError(f"unable to {action}: {e}", status_code=e.resp.status) from e
    except (TransportError, OSError) as e:
        raise GoogleAPIError(f"unable to {action}: {e}") from e
