"""Journal record models.

This module defines the records held by the journal cache:
- IssueState: Enum of issue states reported by GitHub
- UserRef / LabelRef: The author and label details kept per record
- Issue: An open issue that references a managed resource
- Comment: A comment attached to a journal issue

Records are immutable. The cache replaces a record instead of mutating it,
so snapshots handed to readers and subscribers never change underneath them.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class IssueState(str, Enum):
    """State of an issue as reported by GitHub."""

    OPEN = "open"
    CLOSED = "closed"


class UserRef(BaseModel):
    """Author of an issue or comment."""

    model_config = ConfigDict(frozen=True)

    login: str
    avatar_url: Optional[str] = None


class LabelRef(BaseModel):
    """Label attached to an issue."""

    model_config = ConfigDict(frozen=True)

    name: str
    color: Optional[str] = None


class Issue(BaseModel):
    """Journal issue for a managed resource.

    The issue ``number`` is assigned by GitHub and never changes. The
    resource reference (``namespace``/``name``) is derived from the tag in
    the issue title.

    Attributes:
        id: GitHub's unique issue identifier.
        number: Issue number within the repository.
        namespace: Namespace of the referenced resource.
        name: Name of the referenced resource.
        title: Issue title.
        state: Current issue state.
        body: Markdown body of the issue.
        comments: Number of comments reported by GitHub.
        author: Issue author.
        labels: Labels attached to the issue.
        html_url: Browser URL of the issue.
        created_at: Creation time (UTC).
        updated_at: Last update time (UTC).
    """

    model_config = ConfigDict(frozen=True)

    id: int
    number: int = Field(..., gt=0)
    namespace: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    title: str = ""
    state: IssueState = IssueState.OPEN
    body: str = ""
    comments: int = Field(0, ge=0)
    author: UserRef
    labels: List[LabelRef] = Field(default_factory=list)
    html_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def kind(self) -> str:
        return "issue"

    @property
    def key(self) -> Tuple[str, str, int]:
        """Logical key ``(namespace, name, number)``."""
        return (self.namespace, self.name, self.number)


class Comment(BaseModel):
    """Comment on a journal issue.

    Attributes:
        id: GitHub's unique comment identifier.
        issue_number: Number of the issue the comment belongs to.
        namespace: Namespace of the resource referenced by the issue.
        name: Name of the resource referenced by the issue.
        body: Markdown body of the comment.
        author: Comment author.
        html_url: Browser URL of the comment.
        created_at: Creation time (UTC).
        updated_at: Last update time (UTC).
    """

    model_config = ConfigDict(frozen=True)

    id: int
    issue_number: int = Field(..., gt=0)
    namespace: Optional[str] = None
    name: Optional[str] = None
    body: str = ""
    author: UserRef
    html_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def kind(self) -> str:
        return "comment"

    @property
    def key(self) -> Tuple[int, int]:
        """Logical key ``(issue_number, id)``."""
        return (self.issue_number, self.id)
