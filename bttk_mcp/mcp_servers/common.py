"""
Helpers shared by the MCP servers: result content, stdio transport and CLI setup.
"""

import argparse
import json
import logging
from typing import Any, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent

from bttk_mcp.utils.config_loader import get_settings
from bttk_mcp.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def json_result(data: Any) -> List[TextContent]:
    """Serialize a tool result as pretty-printed JSON text."""
    return [TextContent(
        type="text",
        text=json.dumps(data, indent=2, ensure_ascii=False, default=str)
    )]


def text_result(text: str) -> List[TextContent]:
    return [TextContent(type="text", text=text)]


async def serve_stdio(server: Server) -> None:
    """Run an MCP server on stdin/stdout until the client disconnects."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.json (default: search XDG config directories)"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override BTTK_MCP_LOG_LEVEL"
    )


def configure_logging(log_level: Optional[str] = None) -> None:
    """Set up logging from environment settings, with an optional level override."""
    settings = get_settings()
    setup_logging(
        log_level=log_level or settings.log_level,
        log_dir=settings.log_dir,
        enable_file_logging=settings.file_logging
    )
