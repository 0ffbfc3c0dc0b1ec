"""
Endpoint groups of the Obsidian Local REST API.
Each service is a thin mapping from one method to one HTTP call.
"""

import json
from typing import TYPE_CHECKING, Any, Dict, List, Union
from urllib.parse import quote

from bttk_mcp.obsidian.models import (
    DATAVIEW_DQL_CONTENT_TYPE,
    JSON_LOGIC_CONTENT_TYPE,
    MARKDOWN_CONTENT_TYPE,
    NOTE_JSON_CONTENT_TYPE,
    Command,
    JSONLogicResult,
    Note,
    PatchOperation,
    Period,
    SearchResult,
    TargetType,
)

if TYPE_CHECKING:
    from bttk_mcp.obsidian.client import ObsidianClient


def encode_path(path: str) -> str:
    """Percent-encode a vault path, keeping '/' separators."""
    return quote(path.lstrip("/"), safe="/")


def _markdown() -> Dict[str, str]:
    return {"Content-Type": MARKDOWN_CONTENT_TYPE}


def _patch_headers(
    operation: Union[PatchOperation, str],
    target_type: Union[TargetType, str],
    target: str
) -> Dict[str, str]:
    return {
        "Operation": PatchOperation(operation).value,
        "Target-Type": TargetType(target_type).value,
        # header values must be ASCII; the API url-decodes Target
        "Target": quote(target, safe=""),
        "Content-Type": MARKDOWN_CONTENT_TYPE,
    }


def _period_path(period: Union[Period, str]) -> str:
    return f"periodic/{Period(period).value}/"


class _Service:
    def __init__(self, client: "ObsidianClient"):
        self.client = client


class ActiveFileService(_Service):
    """The file currently open in Obsidian."""

    PATH = "active/"

    async def get(self) -> str:
        return await self.client.request_text("GET", self.PATH)

    async def get_note(self) -> Note:
        data = await self.client.request_json(
            "GET", self.PATH, headers={"Accept": NOTE_JSON_CONTENT_TYPE}
        )
        return Note.model_validate(data)

    async def append(self, content: str) -> None:
        await self.client.request("POST", self.PATH, content=content, headers=_markdown())

    async def patch(
        self,
        operation: Union[PatchOperation, str],
        target_type: Union[TargetType, str],
        target: str,
        content: str
    ) -> None:
        """
        Insert content relative to a heading, block reference or frontmatter field.

        Raises:
            ValueError: If operation or target_type is not a known value
            ObsidianAPIError: If the API rejects the patch
        """
        await self.client.request(
            "PATCH",
            self.PATH,
            content=content,
            headers=_patch_headers(operation, target_type, target)
        )

    async def delete(self) -> None:
        await self.client.request("DELETE", self.PATH)


class VaultService(_Service):
    """Files addressed by their path inside the vault."""

    @staticmethod
    def _path(path: str) -> str:
        return "vault/" + encode_path(path)

    async def list(self, path: str = "") -> List[str]:
        """
        List files in a vault directory.

        Args:
            path: Directory relative to the vault root; empty for the root

        Returns:
            File and directory names (directories end with '/')
        """
        target = self._path(path)
        if not target.endswith("/"):
            target += "/"
        data = await self.client.request_json("GET", target)
        return list(data.get("files") or []) if isinstance(data, dict) else []

    async def get(self, path: str) -> str:
        return await self.client.request_text("GET", self._path(path))

    async def get_note(self, path: str) -> Note:
        data = await self.client.request_json(
            "GET", self._path(path), headers={"Accept": NOTE_JSON_CONTENT_TYPE}
        )
        return Note.model_validate(data)

    async def create(self, path: str, content: str) -> None:
        """Create the file or replace its content."""
        await self.client.request("PUT", self._path(path), content=content, headers=_markdown())

    async def append(self, path: str, content: str) -> None:
        await self.client.request("POST", self._path(path), content=content, headers=_markdown())

    async def patch(
        self,
        path: str,
        operation: Union[PatchOperation, str],
        target_type: Union[TargetType, str],
        target: str,
        content: str
    ) -> None:
        await self.client.request(
            "PATCH",
            self._path(path),
            content=content,
            headers=_patch_headers(operation, target_type, target)
        )

    async def delete(self, path: str) -> None:
        await self.client.request("DELETE", self._path(path))


class PeriodicService(_Service):
    """Periodic notes (daily, weekly, ...) provided by the Periodic Notes plugin."""

    async def get_current(self, period: Union[Period, str]) -> str:
        return await self.client.request_text("GET", _period_path(period))

    async def get_current_note(self, period: Union[Period, str]) -> Note:
        data = await self.client.request_json(
            "GET", _period_path(period), headers={"Accept": NOTE_JSON_CONTENT_TYPE}
        )
        return Note.model_validate(data)

    async def append_to_current(self, period: Union[Period, str], content: str) -> None:
        await self.client.request("POST", _period_path(period), content=content, headers=_markdown())

    async def patch_current(
        self,
        period: Union[Period, str],
        operation: Union[PatchOperation, str],
        target_type: Union[TargetType, str],
        target: str,
        content: str
    ) -> None:
        await self.client.request(
            "PATCH",
            _period_path(period),
            content=content,
            headers=_patch_headers(operation, target_type, target)
        )

    async def delete_current(self, period: Union[Period, str]) -> None:
        await self.client.request("DELETE", _period_path(period))

    async def get(self, period: Union[Period, str], year: int, month: int, day: int) -> str:
        """Get the periodic note covering the given date."""
        path = f"{_period_path(period)}{int(year)}/{int(month)}/{int(day)}/"
        return await self.client.request_text("GET", path)


class SearchService(_Service):
    """Vault search endpoints."""

    async def simple(self, query: str, context_length: int = 0) -> List[SearchResult]:
        """
        Full-text search.

        Args:
            query: Text to search for
            context_length: Characters of context around each match; the
                server default is used when not positive

        Returns:
            Matching files with match contexts
        """
        params: Dict[str, Any] = {"query": query}
        if context_length > 0:
            params["contextLength"] = context_length
        data = await self.client.request_json("POST", "search/simple/", params=params)
        return [SearchResult.model_validate(item) for item in data or []]

    async def json_logic(self, query: Any) -> List[JSONLogicResult]:
        """
        Search with a JsonLogic query evaluated against each note.

        Args:
            query: JsonLogic expression (already decoded)
        """
        data = await self.client.request_json(
            "POST",
            "search/",
            content=json.dumps(query),
            headers={"Content-Type": JSON_LOGIC_CONTENT_TYPE}
        )
        return [JSONLogicResult.model_validate(item) for item in data or []]

    async def dataview(self, dql: str) -> List[JSONLogicResult]:
        data = await self.client.request_json(
            "POST",
            "search/",
            content=dql,
            headers={"Content-Type": DATAVIEW_DQL_CONTENT_TYPE}
        )
        return [JSONLogicResult.model_validate(item) for item in data or []]


class CommandService(_Service):
    """Obsidian commands (the command palette)."""

    async def list(self) -> List[Command]:
        data = await self.client.request_json("GET", "commands/")
        commands = (data.get("commands") or []) if isinstance(data, dict) else []
        return [Command.model_validate(item) for item in commands]

    async def execute(self, command_id: str) -> None:
        await self.client.request("POST", f"commands/{quote(command_id, safe='')}/")


class OpenService(_Service):
    """Open files in the Obsidian UI."""

    async def file(self, filename: str, new_leaf: bool = False) -> None:
        """
        Open a file, creating it when it does not exist.

        Args:
            filename: Path relative to the vault root
            new_leaf: Open in a new tab
        """
        params = {"newLeaf": "true"} if new_leaf else None
        await self.client.request("POST", "open/" + encode_path(filename), params=params)
