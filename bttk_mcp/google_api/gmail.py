"""
Read-only Gmail client.
"""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional

from bttk_mcp.google_api.base import build_service, execute

logger = logging.getLogger(__name__)

USER_ID = "me"


class GmailClient:
    """Searches and reads messages of the authorized user."""

    def __init__(self, service: Any):
        """
        Args:
            service: gmail v1 Resource
        """
        self.service = service

    @classmethod
    def from_files(
        cls,
        credentials_file: str,
        token_file: str,
        scopes: Optional[List[str]] = None,
        interactive: bool = True
    ) -> "GmailClient":
        """
        Authorize with the given client secret and token files.

        Raises:
            AuthenticationError: If credentials cannot be obtained
        """
        return cls(build_service("gmail", "v1", credentials_file, token_file, scopes, interactive))

    def search_messages(self, query: str, max_results: int = 0) -> List[Dict[str, Any]]:
        """
        Search messages using Gmail query syntax.

        Args:
            query: Query such as "from:user@example.com is:unread"
            max_results: Page size; API default when not positive

        Returns:
            Message stubs ({id, threadId})

        Raises:
            GoogleAPIError: If the API call fails
        """
        params: Dict[str, Any] = {"userId": USER_ID, "q": query}
        if max_results > 0:
            params["maxResults"] = max_results

        logger.debug(f"Searching messages: {query!r}")
        response = execute(self.service.users().messages().list(**params), "list messages")
        return response.get("messages", [])

    def get_message(self, message_id: str) -> Dict[str, Any]:
        """
        Fetch a message with its full payload tree.

        Raises:
            GoogleAPIError: If the API call fails
        """
        request = self.service.users().messages().get(userId=USER_ID, id=message_id, format="full")
        return execute(request, "get message")


TRUNCATED_SUFFIX = "... [TRUNCATED]"
TEXT_MIME_TYPES = ("text/plain", "text/html")


def _decode_base64url(data: str) -> Optional[bytes]:
    """Decode base64url with or without padding; None when malformed."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError):
        return None


def truncate_message_bodies(payload: Optional[Dict[str, Any]], max_bytes: int) -> None:
    """
    Make a message payload readable and bounded, in place.

    Text parts (text/plain, text/html) get their base64url body replaced by
    the decoded text. A single byte budget is shared by all parts in tree
    order (a part before its children): the part crossing the budget is cut
    and marked with TRUNCATED_SUFFIX, later text parts are emptied. Other
    parts keep their metadata but lose the body data. Text parts that fail
    to decode are left untouched.

    Args:
        payload: Message payload (MessagePart tree)
        max_bytes: Budget for decoded body bytes
    """
    used = 0

    def visit(part: Optional[Dict[str, Any]]) -> None:
        nonlocal used
        if not part:
            return

        body = part.get("body")
        if body and body.get("data"):
            mime_type = part.get("mimeType", "")
            if not any(t in mime_type for t in TEXT_MIME_TYPES):
                body["data"] = ""
            else:
                data = _decode_base64url(body["data"])
                if data is not None:
                    remaining = max_bytes - used
                    if remaining <= 0:
                        body["data"] = ""
                    elif len(data) > remaining:
                        body["data"] = data[:remaining].decode("utf-8", errors="ignore") + TRUNCATED_SUFFIX
                        used = max_bytes
                    else:
                        body["data"] = data.decode("utf-8", errors="replace")
                        used += len(data)

        for child in part.get("parts") or []:
            visit(child)

    visit(payload)
