"""
Obsidian MCP Server.
Provides MCP tools for reading, searching and editing an Obsidian vault
through the Local REST API plugin.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional

from mcp.server import Server
from mcp.types import TextContent, Tool, ToolAnnotations

from bttk_mcp import __version__
from bttk_mcp.mcp_servers.common import (
    add_common_arguments,
    configure_logging,
    json_result,
    serve_stdio,
    text_result,
)
from bttk_mcp.obsidian import ObsidianClient, Period
from bttk_mcp.utils.config_loader import load_config
from bttk_mcp.utils.exceptions import BttkMCPError, ToolExecutionError
from bttk_mcp.utils.validators import optional_bool, optional_int, optional_string, require_string

logger = logging.getLogger(__name__)

SERVER_NAME = "Obsidian MCP Server"
TOOL_PREFIX = "obsidian_"

READ_ONLY = ToolAnnotations(readOnlyHint=True)

JSON_LOGIC_EXAMPLE = """{
  "or": [
    {"===": [{"var": "frontmatter.url"}, "https://myurl.com/some/path/"]},
    {"glob": [{"var": "frontmatter.url-glob"}, "https://myurl.com/some/path/"]}
  ]
}"""

TOOLS: List[Tool] = [
    Tool(
        name="obsidian_get_active_file",
        description="Get the content of the currently active file in Obsidian",
        inputSchema={"type": "object", "properties": {}},
        annotations=READ_ONLY
    ),
    Tool(
        name="obsidian_append_active_file",
        description="Append content to the currently active file",
        inputSchema={
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "Content to append"}
            },
            "required": ["content"]
        }
    ),
    Tool(
        name="obsidian_patch_active_file",
        description="Patch the currently active file",
        inputSchema={
            "type": "object",
            "properties": {
                "operation": {
                    "type": "string",
                    "description": "Operation: append, prepend, replace"
                },
                "target_type": {
                    "type": "string",
                    "description": "Target type: heading, block, frontmatter"
                },
                "target": {
                    "type": "string",
                    "description": "Target selector (e.g., heading name)"
                },
                "content": {"type": "string", "description": "Content to patch"}
            },
            "required": ["operation", "target_type", "target", "content"]
        }
    ),
    Tool(
        name="obsidian_search_simple",
        description="Search the vault for files matching a query",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "context_length": {
                    "type": "number",
                    "description": "Length of context to return"
                }
            },
            "required": ["query"]
        },
        annotations=READ_ONLY
    ),
    Tool(
        name="obsidian_search_json_logic",
        description="Search the vault using JsonLogic",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": f"JsonLogic query (as a JSON string), e.g. {JSON_LOGIC_EXAMPLE}"
                }
            },
            "required": ["query"]
        },
        annotations=READ_ONLY
    ),
    Tool(
        name="obsidian_get_daily_note",
        description="Get the content of today's daily note",
        inputSchema={"type": "object", "properties": {}}
    ),
    Tool(
        name="obsidian_get_file",
        description="Get the content of a specific file in the vault",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to the file"}
            },
            "required": ["path"]
        },
        annotations=READ_ONLY
    ),
    Tool(
        name="obsidian_list_files",
        description="List files in a directory",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Directory path (empty for root)"}
            }
        },
        annotations=READ_ONLY
    ),
    Tool(
        name="obsidian_create_or_update_file",
        description="Create a new file or update an existing one",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to the file"},
                "content": {"type": "string", "description": "Content of the file"}
            },
            "required": ["path", "content"]
        }
    ),
    Tool(
        name="obsidian_open_file",
        description="Open a file in Obsidian UI",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to the file"},
                "new_leaf": {"type": "boolean", "description": "Open in a new leaf (tab)"}
            },
            "required": ["path"]
        }
    ),
]


def is_tool_enabled(name: str, enabled_tools: Optional[Dict[str, bool]]) -> bool:
    """
    Check a tool against the mcp.tools config map.

    An empty map enables every tool. Otherwise a tool is enabled only when
    mapped to true, keyed by its full name or its name without the prefix.
    """
    if not enabled_tools:
        return True
    short_name = name[len(TOOL_PREFIX):] if name.startswith(TOOL_PREFIX) else name
    return bool(enabled_tools.get(name) or enabled_tools.get(short_name))


class ObsidianMCPServer:
    """MCP Server for Obsidian vault operations."""

    def __init__(self, client: ObsidianClient, enabled_tools: Optional[Dict[str, bool]] = None):
        """
        Initialize Obsidian MCP Server.

        Args:
            client: Obsidian REST API client
            enabled_tools: Tool switches from the mcp.tools config section
        """
        self.client = client
        self.enabled_tools = dict(enabled_tools or {})
        self.server = Server(SERVER_NAME, version=__version__)

        handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[List[TextContent]]]] = {
            "obsidian_get_active_file": self._get_active_file,
            "obsidian_append_active_file": self._append_active_file,
            "obsidian_patch_active_file": self._patch_active_file,
            "obsidian_search_simple": self._search_simple,
            "obsidian_search_json_logic": self._search_json_logic,
            "obsidian_get_daily_note": self._get_daily_note,
            "obsidian_get_file": self._get_file,
            "obsidian_list_files": self._list_files,
            "obsidian_create_or_update_file": self._create_or_update_file,
            "obsidian_open_file": self._open_file,
        }
        self._handlers = {
            name: handler for name, handler in handlers.items()
            if is_tool_enabled(name, self.enabled_tools)
        }
        logger.info(f"Registered {len(self._handlers)} Obsidian tools")

        self._setup_tools()

    def tools(self) -> List[Tool]:
        """Tool definitions enabled by configuration."""
        return [tool for tool in TOOLS if tool.name in self._handlers]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        """
        Dispatch a tool call.

        Raises:
            ToolExecutionError: If the tool is unknown or the API call fails
            ValidationError: If a required argument is missing or mistyped
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolExecutionError(f"Unknown tool: {name}", tool_name=name)
        return await handler(arguments or {})

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

    @staticmethod
    def _failed(action: str, error: Exception, tool_name: str) -> ToolExecutionError:
        return ToolExecutionError(f"failed to {action}: {error}", tool_name=tool_name)

    async def _get_active_file(self, arguments: Dict[str, Any]) -> List[TextContent]:
        try:
            note = await self.client.active_file.get_note()
        except BttkMCPError as e:
            raise self._failed("get active file", e, "obsidian_get_active_file") from e
        return json_result(note.model_dump())

    async def _append_active_file(self, arguments: Dict[str, Any]) -> List[TextContent]:
        content = require_string(arguments, "content", "content must be a string")
        try:
            await self.client.active_file.append(content)
        except BttkMCPError as e:
            raise self._failed("append to active file", e, "obsidian_append_active_file") from e
        return text_result("Content appended successfully")

    async def _patch_active_file(self, arguments: Dict[str, Any]) -> List[TextContent]:
        try:
            await self.client.active_file.patch(
                optional_string(arguments, "operation"),
                optional_string(arguments, "target_type"),
                optional_string(arguments, "target"),
                optional_string(arguments, "content")
            )
        except (BttkMCPError, ValueError) as e:
            raise self._failed("patch active file", e, "obsidian_patch_active_file") from e
        return text_result("File patched successfully")

    async def _search_simple(self, arguments: Dict[str, Any]) -> List[TextContent]:
        query = optional_string(arguments, "query")
        context_length = optional_int(arguments, "context_length")
        try:
            results = await self.client.search.simple(query, context_length)
        except BttkMCPError as e:
            raise self._failed("search", e, "obsidian_search_simple") from e
        return json_result({"results": [r.model_dump() for r in results]})

    async def _search_json_logic(self, arguments: Dict[str, Any]) -> List[TextContent]:
        try:
            query = json.loads(optional_string(arguments, "query"))
        except json.JSONDecodeError as e:
            raise ToolExecutionError(
                f"invalid JSON logic query: {e}", tool_name="obsidian_search_json_logic"
            ) from e
        try:
            results = await self.client.search.json_logic(query)
        except BttkMCPError as e:
            raise self._failed("search", e, "obsidian_search_json_logic") from e
        return json_result({"results": [r.model_dump() for r in results]})

    async def _get_daily_note(self, arguments: Dict[str, Any]) -> List[TextContent]:
        try:
            note = await self.client.periodic.get_current_note(Period.DAILY)
        except BttkMCPError as e:
            raise self._failed("get daily note", e, "obsidian_get_daily_note") from e
        return json_result(note.model_dump())

    async def _get_file(self, arguments: Dict[str, Any]) -> List[TextContent]:
        path = optional_string(arguments, "path")
        try:
            note = await self.client.vault.get_note(path)
        except BttkMCPError as e:
            raise self._failed("get file", e, "obsidian_get_file") from e
        return json_result(note.model_dump())

    async def _list_files(self, arguments: Dict[str, Any]) -> List[TextContent]:
        path = optional_string(arguments, "path")
        try:
            files = await self.client.vault.list(path)
        except BttkMCPError as e:
            raise self._failed("list files", e, "obsidian_list_files") from e
        return json_result({"files": files})

    async def _create_or_update_file(self, arguments: Dict[str, Any]) -> List[TextContent]:
        path = optional_string(arguments, "path")
        content = optional_string(arguments, "content")
        try:
            await self.client.vault.create(path, content)
        except BttkMCPError as e:
            raise self._failed("create/update file", e, "obsidian_create_or_update_file") from e
        return text_result("File created/updated successfully")

    async def _open_file(self, arguments: Dict[str, Any]) -> List[TextContent]:
        path = optional_string(arguments, "path")
        new_leaf = optional_bool(arguments, "new_leaf")
        try:
            await self.client.open.file(path, new_leaf=new_leaf)
        except BttkMCPError as e:
            raise self._failed("open file", e, "obsidian_open_file") from e
        return text_result("File opened successfully")

    async def run(self):
        """Run the MCP server."""
        async with self.client:
            await serve_stdio(self.server)


async def main(argv: Optional[List[str]] = None):
    """Main entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Obsidian MCP Server")
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level)
        config = load_config(args.config)
        client = ObsidianClient.from_config(config.obsidian)
    except BttkMCPError as e:
        logger.error(f"Failed to start Obsidian MCP server: {e}")
        sys.exit(1)

    server = ObsidianMCPServer(client, enabled_tools=config.mcp.tools)
    await server.run()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
