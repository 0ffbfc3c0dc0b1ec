"""
Client for the Obsidian Local REST API plugin.
"""

from bttk_mcp.obsidian.client import ObsidianClient
from bttk_mcp.obsidian.models import (
    Command,
    FileStat,
    JSONLogicResult,
    Note,
    PatchOperation,
    Period,
    SearchResult,
    TargetType,
)

__all__ = [
    "ObsidianClient",
    "Command",
    "FileStat",
    "JSONLogicResult",
    "Note",
    "PatchOperation",
    "Period",
    "SearchResult",
    "TargetType",
]
