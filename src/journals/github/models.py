"""Pydantic models for the GitHub issue and comment wire format.

These models validate the subset of the GitHub REST API payloads that the
journal consumes, both from webhook deliveries and from the search and
comments endpoints. Unknown fields are ignored.

API Reference: https://docs.github.com/en/rest/issues
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _as_utc(value: datetime) -> datetime:
    # Timestamps without an offset are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class WireUser(BaseModel):
    """GitHub user as embedded in issues and comments."""

    login: str = Field(..., min_length=1, description="GitHub username")
    avatar_url: Optional[str] = Field(None, description="Avatar image URL")


class WireLabel(BaseModel):
    """GitHub label as embedded in issues."""

    name: str = Field(..., description="Name of the label")
    color: Optional[str] = Field(
        None, description="Hexadecimal color code without leading #"
    )


class WireComment(BaseModel):
    """GitHub issue comment.

    API Reference: https://docs.github.com/en/rest/issues/comments
    """

    id: int = Field(..., description="Unique comment identifier")
    body: str = Field("", description="Markdown text of the comment")
    user: WireUser = Field(..., description="Comment author")
    html_url: Optional[str] = Field(None, description="Browser URL")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")
    updated_at: datetime = Field(..., description="Last update time (ISO 8601)")

    @field_validator("body", mode="before")
    @classmethod
    def null_body_is_empty(cls, v: Optional[str]) -> str:
        """GitHub sends ``null`` for empty bodies."""
        return v or ""

    @field_validator("created_at", "updated_at")
    @classmethod
    def timestamps_are_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class WireIssue(BaseModel):
    """GitHub issue as returned by the issues and search APIs.

    API Reference: https://docs.github.com/en/rest/issues/issues
    """

    id: int = Field(..., description="Unique issue identifier")
    number: int = Field(..., gt=0, description="Issue number in the repository")
    title: str = Field("", description="Issue title")
    state: str = Field(..., description="'open' or 'closed'")
    body: str = Field("", description="Markdown text of the issue")
    comments: int = Field(0, ge=0, description="Number of comments")
    user: WireUser = Field(..., description="Issue author")
    html_url: Optional[str] = Field(None, description="Browser URL")
    labels: List[WireLabel] = Field(default_factory=list)
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")
    updated_at: datetime = Field(..., description="Last update time (ISO 8601)")

    @field_validator("body", "title", mode="before")
    @classmethod
    def null_text_is_empty(cls, v: Optional[str]) -> str:
        """GitHub sends ``null`` for empty bodies."""
        return v or ""

    @field_validator("created_at", "updated_at")
    @classmethod
    def timestamps_are_utc(cls, v: datetime) -> datetime:
        """Normalize timestamps to timezone-aware UTC."""
        return _as_utc(v)
