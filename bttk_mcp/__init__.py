"""
MCP servers exposing an Obsidian vault, Gmail and Google Calendar as agent tools.
"""

__version__ = "1.0.0"
