"""Translation of GitHub wire payloads into journal records.

Journal issues reference the managed resource they concern with a
``[namespace/name]`` tag, by convention in the issue title. Issues without
such a tag are not tracked and are dropped before they reach the cache.

All functions in this module are pure: no I/O and no shared state.
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple, Union

from src.journals.github.models import WireComment, WireIssue, WireUser
from src.journals.models import Comment, Issue, IssueState, LabelRef, UserRef


logger = logging.getLogger(__name__)


RESOURCE_TAG_PATTERN = re.compile(r"\[([a-z0-9-]+)/([a-z0-9-]+)\]")


def parse_resource_reference(text: Optional[str]) -> Optional[Tuple[str, str]]:
    """Find the first ``[namespace/name]`` tag in a text.

    Args:
        text: Issue title or body.

    Returns:
        ``(namespace, name)`` or None if the text carries no tag.
    """
    if not text:
        return None
    match = RESOURCE_TAG_PATTERN.search(text)
    if match is None:
        return None
    return match.group(1), match.group(2)


def _user_ref(user: WireUser) -> UserRef:
    return UserRef(login=user.login, avatar_url=user.avatar_url)


def issue_from_wire(wire: Union[WireIssue, Dict[str, Any]]) -> Optional[Issue]:
    """Translate a GitHub issue into a journal issue.

    Args:
        wire: A validated WireIssue or the raw issue JSON object.

    Returns:
        The journal Issue, or None when the issue references no managed
        resource.

    Raises:
        pydantic.ValidationError: If a raw payload is not a valid issue.
    """
    if not isinstance(wire, WireIssue):
        wire = WireIssue.model_validate(wire)

    reference = parse_resource_reference(wire.title) or parse_resource_reference(
        wire.body
    )
    if reference is None:
        logger.debug(
            "Issue #%s references no resource, skipping",
            wire.number,
            extra={"issue_number": wire.number},
        )
        return None

    namespace, name = reference
    return Issue(
        id=wire.id,
        number=wire.number,
        namespace=namespace,
        name=name,
        title=wire.title,
        state=IssueState(wire.state),
        body=wire.body,
        comments=wire.comments,
        author=_user_ref(wire.user),
        labels=[LabelRef(name=label.name, color=label.color) for label in wire.labels],
        html_url=wire.html_url,
        created_at=wire.created_at,
        updated_at=wire.updated_at,
    )


def comment_from_wire(
    issue_number: int,
    namespace: Optional[str],
    name: Optional[str],
    wire: Union[WireComment, Dict[str, Any]],
) -> Comment:
    """Translate a GitHub issue comment into a journal comment.

    Args:
        issue_number: Number of the issue the comment belongs to.
        namespace: Namespace of the resource referenced by the issue.
        name: Name of the resource referenced by the issue.
        wire: A validated WireComment or the raw comment JSON object.

    Returns:
        The journal Comment.

    Raises:
        pydantic.ValidationError: If a raw payload is not a valid comment.
    """
    if not isinstance(wire, WireComment):
        wire = WireComment.model_validate(wire)

    return Comment(
        id=wire.id,
        issue_number=issue_number,
        namespace=namespace,
        name=name,
        body=wire.body,
        author=_user_ref(wire.user),
        html_url=wire.html_url,
        created_at=wire.created_at,
        updated_at=wire.updated_at,
    )
