"""
Tests for the Obsidian Local REST API client.
"""

import json

import httpx
import pytest

from bttk_mcp.obsidian import ObsidianClient, PatchOperation, Period, TargetType
from bttk_mcp.obsidian.services import encode_path
from bttk_mcp.utils.config_loader import ObsidianConfig
from bttk_mcp.utils.exceptions import ConfigurationError, ObsidianAPIError

NOTE = {
    "content": "# Today\n",
    "frontmatter": {"tags": ["daily"]},
    "path": "Daily/2024-01-15.md",
    "stat": {"ctime": 1700000000000, "mtime": 1700000001000, "size": 8},
    "tags": ["daily"],
}


def respond_json(data, status_code=200):
    return lambda request: httpx.Response(status_code, json=data)


def respond_empty(request):
    return httpx.Response(204)


def test_encode_path():
    assert encode_path("my file.md") == "my%20file.md"
    assert encode_path("/Folder/Sub/note #1.md") == "Folder/Sub/note%20%231.md"
    assert encode_path("") == ""


def test_base_url_gets_trailing_slash():
    client = ObsidianClient("https://127.0.0.1:27124", "token", verify=False)
    assert client.base_url == "https://127.0.0.1:27124/"


def test_from_config_requires_url_and_key():
    with pytest.raises(ConfigurationError):
        ObsidianClient.from_config(ObsidianConfig(url="", apikey="key"))
    with pytest.raises(ConfigurationError):
        ObsidianClient.from_config(ObsidianConfig(url="https://127.0.0.1:27124", apikey=""))


def test_from_config_unreadable_cert(tmp_path):
    config = ObsidianConfig(
        url="https://127.0.0.1:27124",
        apikey="key",
        cert=str(tmp_path / "missing.crt")
    )
    with pytest.raises(ConfigurationError) as exc_info:
        ObsidianClient.from_config(config)
    assert exc_info.value.config_key == "obsidian.cert"


class TestActiveFile:
    """Tests for the active file endpoints."""

    @pytest.mark.asyncio
    async def test_get_sends_bearer_token(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(lambda request: httpx.Response(200, text="# Hello"))

        async with client:
            content = await client.active_file.get()

        assert content == "# Hello"
        request = recorded_requests[0]
        assert request.method == "GET"
        assert str(request.url) == "https://127.0.0.1:27124/active/"
        assert request.headers["Authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_get_note(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json(NOTE))

        async with client:
            note = await client.active_file.get_note()

        assert recorded_requests[0].headers["Accept"] == "application/vnd.olrapi.note+json"
        assert note.content == "# Today\n"
        assert note.path == "Daily/2024-01-15.md"
        assert note.stat.size == 8
        assert note.tags == ["daily"]

    @pytest.mark.asyncio
    async def test_get_note_with_null_collections(self, obsidian_client_factory):
        client = obsidian_client_factory(respond_json({"content": "x", "frontmatter": None, "tags": None}))

        async with client:
            note = await client.active_file.get_note()

        assert note.frontmatter == {}
        assert note.tags == []

    @pytest.mark.asyncio
    async def test_append(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            await client.active_file.append("- item\n")

        request = recorded_requests[0]
        assert request.method == "POST"
        assert request.url.path == "/active/"
        assert request.headers["Content-Type"] == "text/markdown"
        assert request.content == b"- item\n"

    @pytest.mark.asyncio
    async def test_patch_headers(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            await client.active_file.patch(PatchOperation.APPEND, TargetType.HEADING, "Heading 1", "text")

        request = recorded_requests[0]
        assert request.method == "PATCH"
        assert request.headers["Operation"] == "append"
        assert request.headers["Target-Type"] == "heading"
        assert request.headers["Target"] == "Heading%201"
        assert request.headers["Content-Type"] == "text/markdown"
        assert request.content == b"text"

    @pytest.mark.asyncio
    async def test_patch_accepts_strings(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            await client.active_file.patch("replace", "frontmatter", "status", "done")

        assert recorded_requests[0].headers["Operation"] == "replace"
        assert recorded_requests[0].headers["Target-Type"] == "frontmatter"

    @pytest.mark.asyncio
    async def test_patch_rejects_unknown_operation(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            with pytest.raises(ValueError):
                await client.active_file.patch("insert", "heading", "H", "text")

        assert recorded_requests == []

    @pytest.mark.asyncio
    async def test_delete(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            await client.active_file.delete()

        assert recorded_requests[0].method == "DELETE"


class TestErrors:
    """Tests for API error decoding."""

    @pytest.mark.asyncio
    async def test_json_error_body(self, obsidian_client_factory):
        client = obsidian_client_factory(respond_json({"errorCode": 40400, "message": "File not found"}, 404))

        async with client:
            with pytest.raises(ObsidianAPIError) as exc_info:
                await client.vault.get("missing.md")

        assert str(exc_info.value) == "File not found"
        assert exc_info.value.status_code == 404
        assert exc_info.value.api_error_code == 40400

    @pytest.mark.asyncio
    async def test_plain_error_body(self, obsidian_client_factory):
        client = obsidian_client_factory(lambda request: httpx.Response(500, text="boom"))

        async with client:
            with pytest.raises(ObsidianAPIError) as exc_info:
                await client.active_file.get()

        assert str(exc_info.value) == "API error: status code 500, body: boom"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_undecodable_json(self, obsidian_client_factory):
        client = obsidian_client_factory(lambda request: httpx.Response(200, text="not json"))

        async with client:
            with pytest.raises(ObsidianAPIError) as exc_info:
                await client.vault.list()

        assert str(exc_info.value).startswith("failed to decode response")

    @pytest.mark.asyncio
    async def test_transport_error(self, obsidian_client_factory):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = obsidian_client_factory(refuse)

        async with client:
            with pytest.raises(ObsidianAPIError) as exc_info:
                await client.active_file.get()

        assert "connection refused" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestVault:
    """Tests for the vault endpoints."""

    @pytest.mark.asyncio
    async def test_list_root(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json({"files": ["Daily/", "note.md"]}))

        async with client:
            files = await client.vault.list()

        assert files == ["Daily/", "note.md"]
        assert recorded_requests[0].url.path == "/vault/"

    @pytest.mark.asyncio
    async def test_list_directory_is_encoded(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json({"files": []}))

        async with client:
            files = await client.vault.list("My Folder")

        assert files == []
        assert recorded_requests[0].url.raw_path == b"/vault/My%20Folder/"

    @pytest.mark.asyncio
    async def test_get_note_path_is_encoded(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json(NOTE))

        async with client:
            await client.vault.get_note("notes/my file.md")

        request = recorded_requests[0]
        assert request.url.raw_path == b"/vault/notes/my%20file.md"
        assert request.headers["Accept"] == "application/vnd.olrapi.note+json"

    @pytest.mark.asyncio
    async def test_create_uses_put(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            await client.vault.create("new.md", "# New")

        request = recorded_requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/vault/new.md"
        assert request.headers["Content-Type"] == "text/markdown"
        assert request.content == b"# New"

    @pytest.mark.asyncio
    async def test_append_and_patch(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            await client.vault.append("log.md", "line\n")
            await client.vault.patch("log.md", "prepend", "block", "abc123", "first")
            await client.vault.delete("log.md")

        assert [r.method for r in recorded_requests] == ["POST", "PATCH", "DELETE"]
        assert all(r.url.path == "/vault/log.md" for r in recorded_requests)
        assert recorded_requests[1].headers["Target"] == "abc123"


class TestPeriodic:
    """Tests for periodic note endpoints."""

    @pytest.mark.asyncio
    async def test_current_note(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json(NOTE))

        async with client:
            note = await client.periodic.get_current_note(Period.DAILY)

        assert note.path == "Daily/2024-01-15.md"
        assert recorded_requests[0].url.path == "/periodic/daily/"

    @pytest.mark.asyncio
    async def test_note_for_date(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(lambda request: httpx.Response(200, text="weekly"))

        async with client:
            content = await client.periodic.get("weekly", 2024, 1, 5)

        assert content == "weekly"
        assert recorded_requests[0].url.path == "/periodic/weekly/2024/1/5/"

    @pytest.mark.asyncio
    async def test_current_writes(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            await client.periodic.append_to_current("monthly", "text")
            await client.periodic.patch_current("monthly", "append", "heading", "Goals", "- more")
            await client.periodic.delete_current("monthly")

        assert [r.method for r in recorded_requests] == ["POST", "PATCH", "DELETE"]
        assert all(r.url.path == "/periodic/monthly/" for r in recorded_requests)

    @pytest.mark.asyncio
    async def test_unknown_period(self, obsidian_client_factory):
        client = obsidian_client_factory(respond_empty)

        async with client:
            with pytest.raises(ValueError):
                await client.periodic.get_current("hourly")


class TestSearch:
    """Tests for search endpoints."""

    @pytest.mark.asyncio
    async def test_simple_without_context_length(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json([
            {"filename": "a.md", "score": 1.5, "matches": [{"context": "a meeting", "match": {"start": 2, "end": 9}}]}
        ]))

        async with client:
            results = await client.search.simple("meeting")

        request = recorded_requests[0]
        assert request.method == "POST"
        assert request.url.path == "/search/simple/"
        assert dict(request.url.params) == {"query": "meeting"}
        assert results[0].filename == "a.md"
        assert results[0].matches[0].match.end == 9

    @pytest.mark.asyncio
    async def test_simple_with_context_length(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json([]))

        async with client:
            results = await client.search.simple("meeting notes", context_length=50)

        assert results == []
        assert dict(recorded_requests[0].url.params) == {"query": "meeting notes", "contextLength": "50"}

    @pytest.mark.asyncio
    async def test_json_logic(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json([{"filename": "a.md", "result": True}]))
        query = {"in": ["daily", {"var": "tags"}]}

        async with client:
            results = await client.search.json_logic(query)

        request = recorded_requests[0]
        assert request.url.path == "/search/"
        assert request.headers["Content-Type"] == "application/vnd.olrapi.jsonlogic+json"
        assert json.loads(request.content) == query
        assert results[0].result is True

    @pytest.mark.asyncio
    async def test_dataview(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json([{"filename": "b.md", "result": {"file.name": "b"}}]))

        async with client:
            results = await client.search.dataview('TABLE file.name FROM "Projects"')

        request = recorded_requests[0]
        assert request.headers["Content-Type"] == "application/vnd.olrapi.dataview.dql+txt"
        assert request.content == b'TABLE file.name FROM "Projects"'
        assert results[0].filename == "b.md"


class TestCommandsAndOpen:
    """Tests for command and open endpoints."""

    @pytest.mark.asyncio
    async def test_list_commands(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_json({"commands": [
            {"id": "editor:save-file", "name": "Save current file"},
            {"id": "app:open-settings", "name": "Open settings"},
        ]}))

        async with client:
            commands = await client.commands.list()

        assert recorded_requests[0].url.path == "/commands/"
        assert [c.id for c in commands] == ["editor:save-file", "app:open-settings"]

    @pytest.mark.asyncio
    async def test_execute_command(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            await client.commands.execute("editor:save-file")

        request = recorded_requests[0]
        assert request.method == "POST"
        assert request.url.path == "/commands/editor:save-file/"

    @pytest.mark.asyncio
    async def test_open_file(self, obsidian_client_factory, recorded_requests):
        client = obsidian_client_factory(respond_empty)

        async with client:
            await client.open.file("Daily/today.md")
            await client.open.file("Daily/today.md", new_leaf=True)

        assert recorded_requests[0].url.path == "/open/Daily/today.md"
        assert recorded_requests[0].url.query == b""
        assert dict(recorded_requests[1].url.params) == {"newLeaf": "true"}
