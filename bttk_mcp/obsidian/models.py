"""
Data models for the Obsidian Local REST API.
"""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Accept header asking the API for a parsed note instead of raw markdown
NOTE_JSON_CONTENT_TYPE = "application/vnd.olrapi.note+json"
JSON_LOGIC_CONTENT_TYPE = "application/vnd.olrapi.jsonlogic+json"
DATAVIEW_DQL_CONTENT_TYPE = "application/vnd.olrapi.dataview.dql+txt"
MARKDOWN_CONTENT_TYPE = "text/markdown"


class PatchOperation(str, Enum):
    """How PATCH content is applied relative to the target."""

    APPEND = "append"
    PREPEND = "prepend"
    REPLACE = "replace"


class TargetType(str, Enum):
    """Kind of target a PATCH request addresses."""

    HEADING = "heading"
    BLOCK = "block"
    FRONTMATTER = "frontmatter"


class Period(str, Enum):
    """Periodic note periods."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class FileStat(BaseModel):
    """File system metadata."""

    ctime: float = 0
    mtime: float = 0
    size: float = 0


class Note(BaseModel):
    """A note as returned with the note+json Accept header."""

    model_config = ConfigDict(extra="ignore")

    content: str = ""
    frontmatter: Dict[str, Any] = Field(default_factory=dict)
    path: str = ""
    stat: FileStat = Field(default_factory=FileStat)
    tags: List[str] = Field(default_factory=list)

    @field_validator("frontmatter", "tags", mode="before")
    @classmethod
    def none_as_empty(cls, v, info):
        if v is None:
            return {} if info.field_name == "frontmatter" else []
        return v


class MatchSpan(BaseModel):
    start: int = 0
    end: int = 0


class SearchMatch(BaseModel):
    context: str = ""
    match: MatchSpan = Field(default_factory=MatchSpan)


class SearchResult(BaseModel):
    """A single file hit from a simple search."""

    model_config = ConfigDict(extra="ignore")

    filename: str
    score: float = 0
    matches: List[SearchMatch] = Field(default_factory=list)


class JSONLogicResult(BaseModel):
    """A hit from a JsonLogic or Dataview search."""

    filename: str
    result: Any = None


class Command(BaseModel):
    """An Obsidian command that can be executed."""

    id: str
    name: str
