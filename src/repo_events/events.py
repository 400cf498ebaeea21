"""
GitHub activity event types and records.

Events are returned by the repository events endpoint newest first. Records
are built once from the decoded payload and never mutated afterwards.
"""

from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = structlog.get_logger(__name__)


class EventType(str, Enum):
    """GitHub activity event types.

    See https://docs.github.com/en/rest/using-the-rest-api/github-event-types
    """

    COMMIT_COMMENT = "CommitCommentEvent"
    CREATE = "CreateEvent"
    DELETE = "DeleteEvent"
    DEPLOY = "DeploymentEvent"
    DEPLOY_STATUS = "DeploymentStatusEvent"
    DOWNLOAD = "DownloadEvent"
    FOLLOW = "FollowEvent"
    FORK = "ForkEvent"
    FORK_APPLY = "ForkApplyEvent"
    GIST = "GistEvent"
    GOLLUM = "GollumEvent"
    ISSUE_COMMENT = "IssueCommentEvent"
    ISSUES = "IssuesEvent"
    MEMBER = "MemberEvent"
    PAGE_BUILD = "PageBuildEvent"
    PUBLIC = "PublicEvent"
    PULL_REQUEST = "PullRequestEvent"
    PULL_REQUEST_REVIEWED = "PullRequestReviewCommentEvent"
    PUSH = "PushEvent"
    RELEASE = "ReleaseEvent"
    STATUS = "StatusEvent"
    TEAM_ADD = "TeamAddEvent"
    WATCH = "WatchEvent"


def event_type_tag(event_type: "EventType | str") -> str:
    """Return the wire tag for an event type given as enum member or string."""
    if isinstance(event_type, EventType):
        return event_type.value
    return str(event_type)


class EventRecord(BaseModel):
    """A single entry of a repository's activity feed."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    actor: dict[str, Any] | None = None
    repo: dict[str, Any] | None = None
    public: bool | None = None
    created_at: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        """Event ids are opaque; integers are accepted and kept as strings."""
        if isinstance(v, bool) or not isinstance(v, (str, int)):
            raise ValueError(f"event id must be a string or integer, got {type(v)}")
        return str(v)

    @property
    def known_type(self) -> EventType | None:
        """The matching EventType member, or None for unlisted types."""
        try:
            return EventType(self.type)
        except ValueError:
            return None


def parse_events(data: Any) -> list[EventRecord] | None:
    """
    Build event records from a decoded events response.

    Args:
        data: Decoded JSON body of the events endpoint

    Returns:
        Records in response order, or None when the body is not an event list
    """
    if not isinstance(data, list):
        logger.warning(
            "Events payload is not a list", payload_type=type(data).__name__
        )
        return None

    try:
        return [EventRecord.model_validate(item) for item in data]
    except ValidationError as e:
        logger.warning("Malformed event in payload", error=str(e))
        return None
