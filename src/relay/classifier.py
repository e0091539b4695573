"""
Event classification.

Each rule binds an (event, action) pair to the channel its notification
goes to. Rules are tried in declaration order and the first match wins.
"""

from enum import Enum
from typing import Optional

from .models import WebhookPayload


class EventRule(Enum):
    """Notification rules as (event, action, channel, required payload fields).

    Required fields are dotted paths into the payload, e.g. ``comment.user``.
    """

    # Matched structurally, whatever the event header says
    PULL_REQUEST_MERGED = (None, "closed", "logs", ("pull_request", "repository"))

    ISSUE_OPENED = ("issues", "opened", "issue", ("issue", "repository"))
    ISSUE_EDITED = ("issues", "edited", "issue", ("issue", "repository"))
    ISSUE_CLOSED = ("issues", "closed", "issue", ("issue", "repository"))
    ISSUE_REOPENED = ("issues", "reopened", "issue", ("issue", "repository"))
    ISSUE_COMMENT_CREATED = ("issue_comment", "created", "issue", ("issue", "comment.user", "repository"))
    ISSUE_COMMENT_EDITED = ("issue_comment", "edited", "issue", ("issue", "comment.user", "repository"))

    PULL_REQUEST_OPENED = ("pull_request", "opened", "pr", ("pull_request", "repository"))
    PULL_REQUEST_EDITED = ("pull_request", "edited", "pr", ("pull_request", "repository"))
    PULL_REQUEST_REVIEW_REQUESTED = (
        "pull_request", "review_requested", "pr", ("pull_request", "repository")
    )
    PULL_REQUEST_REVIEW_SUBMITTED = (
        "pull_request_review", "submitted", "pr", ("pull_request", "review.user", "repository")
    )
    PULL_REQUEST_REVIEW_COMMENT_CREATED = (
        "pull_request_review_comment", "created", "pr", ("pull_request", "comment.user", "repository")
    )

    def __init__(self, event, action, channel, requires):
        self.event = event
        self.action = action
        self.channel = channel
        self.requires = requires

    def matches(self, event_type: Optional[str], payload: WebhookPayload) -> bool:
        if self is EventRule.PULL_REQUEST_MERGED:
            if payload.pull_request is None or not payload.pull_request.merged:
                return False
        elif self.event != event_type:
            return False
        if payload.action != self.action:
            return False
        return all(_resolve(payload, path) is not None for path in self.requires)


def _resolve(payload: WebhookPayload, path: str):
    value = payload
    for name in path.split("."):
        value = getattr(value, name, None)
        if value is None:
            return None
    return value


def classify(event_type: Optional[str], payload: WebhookPayload) -> Optional[EventRule]:
    """
    Pick the notification rule for a delivery.

    Args:
        event_type: Value of the event header, if any
        payload: Parsed webhook payload

    Returns:
        The first matching rule, or None when the delivery is not relayed
    """
    for rule in EventRule:
        if rule.matches(event_type, payload):
            return rule
    return None
