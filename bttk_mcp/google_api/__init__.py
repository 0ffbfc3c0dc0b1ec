"""
Thin clients for the Gmail and Google Calendar APIs.
"""

from bttk_mcp.google_api.calendar import CalendarClient
from bttk_mcp.google_api.gmail import GmailClient

__all__ = ["CalendarClient", "GmailClient"]
