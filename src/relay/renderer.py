"""
Markdown rendering of webhook events for traQ.
"""

import re
from typing import Callable, Dict, Optional

from config import SuppressionConfig

from .classifier import EventRule
from .models import User, WebhookPayload

DETAILS_PATTERN = re.compile(r"<details>.*?</details>", re.DOTALL)
DEPENDABOT_PATTERNS = (
    re.compile(r"\[//\]: # \(dependabot-start\).*\[//\]: # \(dependabot-end\)", re.DOTALL),
    re.compile(
        r"\[//\]: # \(dependabot-automerge-start\).*\[//\]: # \(dependabot-automerge-end\)",
        re.DOTALL,
    ),
)
SCHEME_PATTERN = re.compile(r"^https?:", re.IGNORECASE)


def format_body(text: Optional[str]) -> Optional[str]:
    """Strip collapsed <details> blocks and dependabot markers from a body."""
    if not text:
        return None
    text = DETAILS_PATTERN.sub("", text)
    for pattern in DEPENDABOT_PATTERNS:
        text = pattern.sub("", text)
    text = text.strip()
    return text or None


def escape_url(url: str) -> str:
    """Drop the scheme so traQ does not unfurl the link."""
    return SCHEME_PATTERN.sub("", url)


def render_link(text: str, url: Optional[str]) -> str:
    if not url:
        return text
    return f"[{text}]({escape_url(url)})"


def render_user(user: User) -> str:
    # Gitea users may have no profile URL
    return render_link(user.login, user.html_url)


def render_message(title: str, metadata: Dict[str, str], body: Optional[str] = None) -> str:
    """
    Assemble a notification.

    Args:
        title: Heading text, links already rendered
        metadata: Label to rendered value, kept in insertion order
        body: Formatted body; the rule and body are left out when empty

    Returns:
        str: Markdown text
    """
    lines = [f"## {title}"]
    lines.extend(f"{label}: {value}" for label, value in metadata.items())
    if body:
        lines.extend(["", "---", body])
    return "\n".join(lines)


def _metadata(payload: WebhookPayload, label: str, actor: Optional[User]) -> Dict[str, str]:
    repository = payload.repository
    metadata = {"リポジトリ": render_link(repository.name, repository.html_url)}
    if actor is not None:
        metadata[label] = render_user(actor)
    return metadata


def _acting_user(payload: WebhookPayload, fallback: Optional[User]) -> Optional[User]:
    return payload.sender or fallback


def _pr_body(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    pr = payload.pull_request
    if pr.user is not None and pr.user.login in suppression.body_omitted:
        return None
    return format_body(pr.body)


def _is_edit_ignored(actor: Optional[User], suppression: SuppressionConfig) -> bool:
    return actor is not None and actor.login in suppression.edit_ignored


def _is_comment_ignored(payload: WebhookPayload, suppression: SuppressionConfig) -> bool:
    return payload.comment.user.login in suppression.comment_ignored


def render_pull_request_merged(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    pr = payload.pull_request
    metadata = _metadata(payload, "PR作成者", pr.user)
    if payload.sender is not None:
        metadata["マージした人"] = render_user(payload.sender)
    return render_message(
        f"{render_link(pr.title, pr.link)}がマージされました",
        metadata,
        _pr_body(payload, suppression),
    )


def render_issue_opened(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    issue = payload.issue
    return render_message(
        f"新しいissue{render_link(issue.title, issue.link)}が作成されました",
        _metadata(payload, "issue作成者", issue.user or payload.sender),
        format_body(issue.body),
    )


def render_issue_edited(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    issue = payload.issue
    editor = _acting_user(payload, issue.user)
    if _is_edit_ignored(editor, suppression):
        return None
    return render_message(
        f"issue{render_link(issue.title, issue.link)}が編集されました",
        _metadata(payload, "issue編集者", editor),
        format_body(issue.body),
    )


def render_issue_closed(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    issue = payload.issue
    return render_message(
        f"issue{render_link(issue.title, issue.link)}が閉じられました",
        _metadata(payload, "issueを閉じた人", _acting_user(payload, issue.user)),
        format_body(issue.body),
    )


def render_issue_reopened(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    issue = payload.issue
    return render_message(
        f"issue{render_link(issue.title, issue.link)}が再び開かれました",
        _metadata(payload, "issueを開けた人", _acting_user(payload, issue.user)),
        format_body(issue.body),
    )


def render_issue_comment_created(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    if _is_comment_ignored(payload, suppression):
        return None
    issue = payload.issue
    comment = payload.comment
    return render_message(
        f"issue{render_link(issue.title, issue.link)}にコメントが追加されました",
        _metadata(payload, "コメントした人", comment.user),
        format_body(comment.body),
    )


def render_issue_comment_edited(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    comment = payload.comment
    if _is_comment_ignored(payload, suppression):
        return None
    if _is_edit_ignored(_acting_user(payload, comment.user), suppression):
        return None
    issue = payload.issue
    return render_message(
        f"issue{render_link(issue.title, issue.link)}のコメントが変更されました",
        _metadata(payload, "コメントした人", comment.user),
        format_body(comment.body),
    )


def render_pull_request_opened(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    pr = payload.pull_request
    return render_message(
        f"新しいPR{render_link(pr.title, pr.link)}が作成されました",
        _metadata(payload, "PR作成者", pr.user or payload.sender),
        _pr_body(payload, suppression),
    )


def render_pull_request_edited(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    pr = payload.pull_request
    editor = _acting_user(payload, pr.user)
    if _is_edit_ignored(editor, suppression):
        return None
    return render_message(
        f"PR{render_link(pr.title, pr.link)}が編集されました",
        _metadata(payload, "PR編集者", editor),
        _pr_body(payload, suppression),
    )


def render_pull_request_review_requested(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    pr = payload.pull_request
    return render_message(
        f"PR{render_link(pr.title, pr.link)}でレビューがリクエストされました",
        _metadata(payload, "リクエストした人", _acting_user(payload, pr.user)),
        _pr_body(payload, suppression),
    )


def render_pull_request_review_submitted(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    pr = payload.pull_request
    review = payload.review
    return render_message(
        f"PR{render_link(pr.title, pr.link)}がレビューされました",
        _metadata(payload, "レビューした人", review.user),
        format_body(review.body),
    )


def render_pull_request_review_comment_created(payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    if _is_comment_ignored(payload, suppression):
        return None
    pr = payload.pull_request
    comment = payload.comment
    return render_message(
        f"PR{render_link(pr.title, pr.link)}にレビューコメントが追加されました",
        _metadata(payload, "コメントした人", comment.user),
        format_body(comment.body),
    )


Renderer = Callable[[WebhookPayload, SuppressionConfig], Optional[str]]

RENDERERS: Dict[EventRule, Renderer] = {
    EventRule.PULL_REQUEST_MERGED: render_pull_request_merged,
    EventRule.ISSUE_OPENED: render_issue_opened,
    EventRule.ISSUE_EDITED: render_issue_edited,
    EventRule.ISSUE_CLOSED: render_issue_closed,
    EventRule.ISSUE_REOPENED: render_issue_reopened,
    EventRule.ISSUE_COMMENT_CREATED: render_issue_comment_created,
    EventRule.ISSUE_COMMENT_EDITED: render_issue_comment_edited,
    EventRule.PULL_REQUEST_OPENED: render_pull_request_opened,
    EventRule.PULL_REQUEST_EDITED: render_pull_request_edited,
    EventRule.PULL_REQUEST_REVIEW_REQUESTED: render_pull_request_review_requested,
    EventRule.PULL_REQUEST_REVIEW_SUBMITTED: render_pull_request_review_submitted,
    EventRule.PULL_REQUEST_REVIEW_COMMENT_CREATED: render_pull_request_review_comment_created,
}


def render_event(rule: EventRule, payload: WebhookPayload, suppression: SuppressionConfig) -> Optional[str]:
    """Render the message for ``rule``, or None when the actor is suppressed."""
    return RENDERERS[rule](payload, suppression)
