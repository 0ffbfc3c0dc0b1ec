"""
Gmail MCP Server.
Provides read-only MCP tools for searching and reading Gmail messages via OAuth2.
"""

import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.types import TextContent, Tool, ToolAnnotations

from bttk_mcp import __version__
from bttk_mcp.google_api.gmail import GmailClient, truncate_message_bodies
from bttk_mcp.mcp_servers.common import (
    add_common_arguments,
    configure_logging,
    json_result,
    serve_stdio,
)
from bttk_mcp.utils.config_loader import load_config
from bttk_mcp.utils.exceptions import BttkMCPError, ToolExecutionError
from bttk_mcp.utils.validators import optional_int, require_string

logger = logging.getLogger(__name__)

SERVER_NAME = "gmailmcp"

DEFAULT_MAX_RESULTS = 50
DEFAULT_MAX_BODY_BYTES = 10000


class GmailMCPServer:
    """MCP Server for Gmail operations."""

    def __init__(self, client: GmailClient):
        """
        Initialize Gmail MCP Server.

        Args:
            client: Authorized Gmail client
        """
        self.client = client
        self.server = Server(SERVER_NAME, version=__version__)
        self._setup_tools()

    def tools(self) -> List[Tool]:
        return [
            Tool(
                name="gmail_search",
                description="Search for Gmail messages using a query string.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "The search query (e.g., 'from:user@example.com', 'subject:meeting')."
                        },
                        "maxResults": {
                            "type": "number",
                            "description": f"Maximum number of results to return (default {DEFAULT_MAX_RESULTS})."
                        }
                    },
                    "required": ["query"]
                },
                annotations=ToolAnnotations(readOnlyHint=True)
            ),
            Tool(
                name="gmail_read",
                description="Read the content of a specific Gmail message by ID.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "messageId": {
                            "type": "string",
                            "description": "The ID of the message to read."
                        },
                        "maxBodyBytes": {
                            "type": "number",
                            "description": f"Maximum bytes of body content to return (default {DEFAULT_MAX_BODY_BYTES})."
                        }
                    },
                    "required": ["messageId"]
                },
                annotations=ToolAnnotations(readOnlyHint=True)
            ),
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        """
        Dispatch a tool call.

        Raises:
            ToolExecutionError: If the tool is unknown or the API call fails
            ValidationError: If a required argument is missing or mistyped
        """
        arguments = arguments or {}

        if name == "gmail_search":
            query = require_string(arguments, "query")
            max_results = optional_int(arguments, "maxResults", DEFAULT_MAX_RESULTS)
            try:
                messages = self.client.search_messages(query, max_results)
            except BttkMCPError as e:
                raise ToolExecutionError(f"failed to search messages: {e}", tool_name=name) from e
            return json_result({"messages": messages, "count": len(messages)})

        elif name == "gmail_read":
            message_id = require_string(arguments, "messageId")
            max_body_bytes = optional_int(arguments, "maxBodyBytes", DEFAULT_MAX_BODY_BYTES)
            try:
                message = self.client.get_message(message_id)
            except BttkMCPError as e:
                raise ToolExecutionError(f"failed to get message: {e}", tool_name=name) from e
            truncate_message_bodies(message.get("payload"), max_body_bytes)
            return json_result(message)

        else:
            raise ToolExecutionError(f"Unknown tool: {name}", tool_name=name)

    def _setup_tools(self):
        """Register MCP tools."""

        @self.server.list_tools()
        async def list_tools() -> List[Tool]:
            return self.tools()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            try:
                return await self.call_tool(name, arguments)
            except BttkMCPError as e:
                logger.error(f"Tool {name} failed: {e}")
                raise

    async def run(self):
        """Run the MCP server."""
        await serve_stdio(self.server)


async def main(argv: Optional[List[str]] = None):
    """Main entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Gmail MCP Server")
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level)
        config = load_config(args.config)
        if not config.gmail.credentials_file or not config.gmail.token_file:
            logger.error("Gmail credentials_file and token_file must be specified in config")
            sys.exit(1)
        client = GmailClient.from_files(config.gmail.credentials_file, config.gmail.token_file)
    except BttkMCPError as e:
        logger.error(f"Failed to create Gmail client: {e}")
        sys.exit(1)

    server = GmailMCPServer(client)
    await server.run()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
