"""
Google Calendar MCP Server.
Provides MCP tools for Google Calendar operations via OAuth2, restricted to
an optional allow-list of calendars.
"""

import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.types import TextContent, Tool, ToolAnnotations

from bttk_mcp import __version__
from bttk_mcp.google_api.calendar import CalendarClient
from bttk_mcp.mcp_servers.common import (
    add_common_arguments,
    configure_logging,
    json_result,
    serve_stdio,
    text_result,
)
from bttk_mcp.utils.config_loader import Config, load_config
from bttk_mcp.utils.exceptions import BttkMCPError, ToolExecutionError, ValidationError
from bttk_mcp.utils.validators import (
    optional_int,
    optional_string,
    parse_event_datetime,
    parse_recurrence,
    require_string,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "Calendar MCP"
DEFAULT_CALENDAR = "primary"

_CALENDAR_ARG = {
    "type": "string",
    "description": "The calendar ID (default: 'primary')."
}


class CalendarMCPServer:
    """MCP Server for Google Calendar operations."""

    def __init__(self, client: CalendarClient, allowed_calendars: Optional[List[str]] = None):
        """
        Initialize Calendar MCP Server.

        Args:
            client: Authorized Calendar client
            allowed_calendars: Calendar IDs tools may touch; empty allows all
        """
        self.client = client
        self.allowed_calendars = list(allowed_calendars or [])
        self.server = Server(SERVER_NAME, version=__version__)
        self._setup_tools()

    def is_calendar_allowed(self, calendar_id: str) -> bool:
        return not self.allowed_calendars or calendar_id in self.allowed_calendars

    def check_calendar_access(self, calendar_id: str) -> None:
        """
        Raises:
            ToolExecutionError: If the calendar is not in the allow-list
        """
        if not self.is_calendar_allowed(calendar_id):
            raise ToolExecutionError(
                f"access to calendar is not allowed by configuration: {calendar_id}"
            )

    def _calendar_arg(self, arguments: Dict[str, Any]) -> str:
        calendar_id = optional_string(arguments, "calendar") or DEFAULT_CALENDAR
        self.check_calendar_access(calendar_id)
        return calendar_id

    def tools(self) -> List[Tool]:
        return [
            Tool(
                name="calendar_list",
                description="List available calendars.",
                inputSchema={"type": "object", "properties": {}},
                annotations=ToolAnnotations(readOnlyHint=True)
            ),
            Tool(
                name="calendar_list_events",
                description="List upcoming events from a specific calendar.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "calendar": {
                            "type": "string",
                            "description": "The calendar ID to list events from (default: 'primary')."
                        },
                        "timeMin": {
                            "type": "string",
                            "description": "Lower bound (exclusive) for an event's end time to filter by. RFC3339 format. Default is now."
                        },
                        "timeMax": {
                            "type": "string",
                            "description": "Upper bound (exclusive) for an event's start time to filter by. RFC3339 format."
                        },
                        "maxResults": {
                            "type": "number",
                            "description": "Maximum number of events to return."
                        }
                    }
                },
                annotations=ToolAnnotations(readOnlyHint=True)
            ),
            Tool(
                name="calendar_create_event",
                description="Create a new event in a specific calendar.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "calendar": {
                            "type": "string",
                            "description": "The calendar ID to create the event in (default: 'primary')."
                        },
                        "summary": {"type": "string", "description": "Title of the event."},
                        "startTime": {
                            "type": "string",
                            "description": "Start time of the event (RFC3339 format, or YYYY-MM-DD for all-day)."
                        },
                        "endTime": {
                            "type": "string",
                            "description": "End time of the event (RFC3339 format, or YYYY-MM-DD for all-day)."
                        },
                        "description": {"type": "string", "description": "Description of the event."},
                        "location": {"type": "string", "description": "Location of the event."},
                        "recurrence": {
                            "type": "string",
                            "description": "Recurrence rules (RRULE) for the event (e.g. ['RRULE:FREQ=DAILY;COUNT=2'])."
                        }
                    },
                    "required": ["summary", "startTime", "endTime"]
                }
            ),
            Tool(
                name="calendar_patch_event",
                description="Update/Patch an existing event in a specific calendar.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "calendar": _CALENDAR_ARG,
                        "eventId": {"type": "string", "description": "The ID of the event to update."},
                        "summary": {"type": "string", "description": "New title of the event."},
                        "startTime": {"type": "string", "description": "New start time (RFC3339)."},
                        "endTime": {"type": "string", "description": "New end time (RFC3339)."},
                        "description": {"type": "string", "description": "New description."},
                        "location": {"type": "string", "description": "New location."},
                        "recurrence": {
                            "type": "string",
                            "description": "New recurrence rules (replaces existing)."
                        }
                    },
                    "required": ["eventId"]
                }
            ),
            Tool(
                name="calendar_delete_event",
                description="Delete an event from a specific calendar.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "calendar": _CALENDAR_ARG,
                        "eventId": {"type": "string", "description": "The ID of the event to delete."}
                    },
                    "required": ["eventId"]
                },
                annotations=ToolAnnotations(destructiveHint=True)
            ),
            Tool(
                name="calendar_move_event",
                description="Move an event from one calendar to another.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "calendar": {
                            "type": "string",
                            "description": "The source calendar ID (default: 'primary')."
                        },
                        "eventId": {"type": "string", "description": "The ID of the event to move."},
                        "destination": {"type": "string", "description": "The destination calendar ID."}
                    },
                    "required": ["eventId", "destination"]
                }
            ),
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        """
        Dispatch a tool call.

        Raises:
            ToolExecutionError: If the tool is unknown, the calendar is not
                allowed or the API call fails
            ValidationError: If an argument is missing or malformed
        """
        arguments = arguments or {}

        if name == "calendar_list":
            try:
                calendars = self.client.list_calendars()
            except BttkMCPError as e:
                raise ToolExecutionError(f"failed to list calendars: {e}", tool_name=name) from e
            return json_result([c for c in calendars if self.is_calendar_allowed(c.get("id", ""))])

        elif name == "calendar_list_events":
            calendar_id = self._calendar_arg(arguments)
            try:
                events = self.client.list_events(
                    calendar_id,
                    time_min=optional_string(arguments, "timeMin"),
                    time_max=optional_string(arguments, "timeMax"),
                    max_results=optional_int(arguments, "maxResults")
                )
            except BttkMCPError as e:
                raise ToolExecutionError(f"failed to list events: {e}", tool_name=name) from e
            return json_result(events)

        elif name == "calendar_create_event":
            calendar_id = self._calendar_arg(arguments)
            summary = require_string(arguments, "summary", "summary is required")
            start_time = require_string(arguments, "startTime", "startTime is required")
            end_time = require_string(arguments, "endTime", "endTime is required")

            event: Dict[str, Any] = {
                "summary": summary,
                "start": self._event_time(start_time, "startTime"),
                "end": self._event_time(end_time, "endTime"),
            }
            for field in ("description", "location"):
                value = optional_string(arguments, field)
                if value:
                    event[field] = value
            recurrence = self._recurrence(arguments)
            if recurrence is not None:
                event["recurrence"] = recurrence

            try:
                created = self.client.create_event(calendar_id, event)
            except BttkMCPError as e:
                raise ToolExecutionError(f"failed to create event: {e}", tool_name=name) from e
            return json_result(created)

        elif name == "calendar_patch_event":
            calendar_id = self._calendar_arg(arguments)
            event_id = require_string(arguments, "eventId", "eventId is required")

            event = {}
            for field in ("summary", "description", "location"):
                value = optional_string(arguments, field)
                if value:
                    event[field] = value
            start_time = optional_string(arguments, "startTime")
            if start_time:
                event["start"] = self._event_time(start_time, "startTime")
            end_time = optional_string(arguments, "endTime")
            if end_time:
                event["end"] = self._event_time(end_time, "endTime")
            recurrence = self._recurrence(arguments)
            if recurrence is not None:
                event["recurrence"] = recurrence

            try:
                patched = self.client.patch_event(calendar_id, event_id, event)
            except BttkMCPError as e:
                raise ToolExecutionError(f"failed to patch event: {e}", tool_name=name) from e
            return json_result(patched)

        elif name == "calendar_delete_event":
            calendar_id = self._calendar_arg(arguments)
            event_id = require_string(arguments, "eventId", "eventId is required")
            try:
                self.client.delete_event(calendar_id, event_id)
            except BttkMCPError as e:
                raise ToolExecutionError(f"failed to delete event: {e}", tool_name=name) from e
            return text_result(f"Event {event_id} deleted successfully from calendar {calendar_id}")

        elif name == "calendar_move_event":
            calendar_id = self._calendar_arg(arguments)
            event_id = require_string(arguments, "eventId", "eventId is required")
            destination = require_string(arguments, "destination", "destination is required")
            try:
                self.check_calendar_access(destination)
            except ToolExecutionError as e:
                raise ToolExecutionError(f"destination calendar: {e}", tool_name=name) from e
            try:
                moved = self.client.move_event(calendar_id, event_id, destination)
            except BttkMCPError as e:
                raise ToolExecutionError(f"failed to move event: {e}", tool_name=name) from e
            return json_result(moved)

        else:
            raise ToolExecutionError(f"Unknown tool: {name}", tool_name=name)

    @staticmethod
    def _event_time(value: str, field: str) -> Dict[str, str]:
        try:
            return parse_event_datetime(value)
        except ValidationError as e:
            raise ValidationError(f"invalid {field} format: {e}", field=field, value=value) from e

    @staticmethod
    def _recurrence(arguments: Dict[str, Any]) -> Optional[List[str]]:
        try:
            return parse_recurrence(arguments.get("recurrence"))
        except ValidationError as e:
            raise ValidationError(
                f"failed to parse recurrence: {e}", field="recurrence", value=arguments.get("recurrence")
            ) from e

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


def _load_config_or_defaults(path: Optional[str]) -> Config:
    try:
        return load_config(path)
    except BttkMCPError as e:
        logger.warning(f"Error loading config, using defaults: {e}")
        return Config()


def _create_client(config: Config) -> CalendarClient:
    try:
        return CalendarClient.from_files(config.calendar.credentials_file, config.calendar.token_file)
    except BttkMCPError as e:
        logger.error(f"Failed to create calendar client: {e}")
        sys.exit(1)


def run_list(config: Config) -> None:
    """Print every calendar of the authorized user."""
    client = _create_client(config)
    try:
        calendars = client.list_calendars()
    except BttkMCPError as e:
        logger.error(f"Failed to list calendars: {e}")
        sys.exit(1)

    print("All Available Calendars:")
    for cal in calendars:
        print(
            f"- {cal.get('summary', '')} (ID: {cal.get('id', '')}) "
            f"[Primary: {str(bool(cal.get('primary'))).lower()}] "
            f"[Access: {cal.get('accessRole', '')}]"
        )


def run_auth(config: Config) -> None:
    """Run the OAuth flow if needed, then check the token against the API."""
    print("Checking Calendar authentication...")
    client = _create_client(config)

    print("Authentication successful. Verifying API access...")
    try:
        client.list_calendars()
    except BttkMCPError as e:
        logger.error(
            f"API verification failed: {e} "
            "(If you have recently changed scopes, try deleting token.json)"
        )
        sys.exit(1)

    print("Calendar authentication and verification completed successfully!")


async def main(argv: Optional[List[str]] = None):
    """Main entry point for the MCP server and its subcommands."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Google Calendar MCP Server",
        epilog="Subcommands: list (list available calendars), auth (authenticate with Google Calendar)"
    )
    add_common_arguments(parser)
    parser.add_argument(
        "command",
        nargs="?",
        choices=["list", "auth"],
        help="Run a maintenance command instead of serving MCP on stdio"
    )
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level)
    except BttkMCPError as e:
        logger.error(f"Failed to configure logging: {e}")
        sys.exit(1)
    config = _load_config_or_defaults(args.config)

    if args.command == "list":
        run_list(config)
        return
    if args.command == "auth":
        run_auth(config)
        return

    server = CalendarMCPServer(_create_client(config), allowed_calendars=config.calendar.calendars)
    await server.run()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
