"""
MCP servers exposing Obsidian, Gmail and Google Calendar tools over stdio.
"""

from bttk_mcp.mcp_servers.gmail_server import GmailMCPServer
from bttk_mcp.mcp_servers.google_calendar_server import CalendarMCPServer
from bttk_mcp.mcp_servers.obsidian_server import ObsidianMCPServer

__all__ = ["CalendarMCPServer", "GmailMCPServer", "ObsidianMCPServer"]
