"""
Google Calendar client.
"""

import logging
from typing import Any, Dict, List, Optional

from bttk_mcp.google_api.base import build_service, execute
from bttk_mcp.utils.validators import now_rfc3339

logger = logging.getLogger(__name__)


class CalendarClient:
    """Calendar list and event operations for the authorized user."""

    def __init__(self, service: Any):
        self.service = service

    @classmethod
    def from_files(
        cls,
        credentials_file: str,
        token_file: str,
        scopes: Optional[List[str]] = None,
        interactive: bool = True
    ) -> "CalendarClient":
        """
        Authorize with the given client secret and token files.

        Raises:
            AuthenticationError: If credentials cannot be obtained
        """
        return cls(build_service("calendar", "v3", credentials_file, token_file, scopes, interactive))

    def list_calendars(self) -> List[Dict[str, Any]]:
        """Return the user's calendar list entries."""
        response = execute(self.service.calendarList().list(), "list calendars")
        return response.get("items", [])

    def list_events(
        self,
        calendar_id: str,
        time_min: str = "",
        time_max: str = "",
        max_results: int = 0
    ) -> List[Dict[str, Any]]:
        """
        List upcoming events, recurring events expanded into instances.

        Args:
            calendar_id: Calendar ID
            time_min: RFC3339 lower bound for event end; defaults to now
            time_max: RFC3339 upper bound for event start
            max_results: Maximum events; API default when not positive

        Returns:
            Events ordered by start time

        Raises:
            GoogleAPIError: If the API call fails
        """
        params: Dict[str, Any] = {
            "calendarId": calendar_id,
            "timeMin": time_min or now_rfc3339(),
            "showDeleted": False,
            "singleEvents": True,
            "orderBy": "startTime",
        }
        if time_max:
            params["timeMax"] = time_max
        if max_results > 0:
            params["maxResults"] = max_results

        response = execute(self.service.events().list(**params), "retrieve events")
        return response.get("items", [])

    def create_event(self, calendar_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
        request = self.service.events().insert(calendarId=calendar_id, body=event)
        return execute(request, "create event")

    def patch_event(self, calendar_id: str, event_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
        """Update only the fields present in event."""
        request = self.service.events().patch(calendarId=calendar_id, eventId=event_id, body=event)
        return execute(request, "patch event")

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        request = self.service.events().delete(calendarId=calendar_id, eventId=event_id)
        execute(request, "delete event")
        logger.info(f"Deleted event {event_id} from {calendar_id}")

    def move_event(self, calendar_id: str, event_id: str, destination: str) -> Dict[str, Any]:
        """Move an event to another calendar, changing its organizer."""
        request = self.service.events().move(
            calendarId=calendar_id, eventId=event_id, destination=destination
        )
        return execute(request, "move event")
