"""
Payload models shared by GitHub and Gitea webhooks.

Only the fields the relay renders are declared; anything else in the
payload is ignored. Gitea omits several URLs that GitHub always sends,
so those are optional here.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ProviderType(str, Enum):
    """Supported webhook providers."""
    GITHUB = "github"
    GITEA = "gitea"


class Repository(BaseModel):
    name: str
    html_url: Optional[str] = None


class User(BaseModel):
    login: str
    html_url: Optional[str] = None


class Issue(BaseModel):
    title: str
    html_url: Optional[str] = None
    url: Optional[str] = None
    body: Optional[str] = None
    user: Optional[User] = None

    @property
    def link(self) -> Optional[str]:
        return self.html_url or self.url


class PullRequest(BaseModel):
    title: str
    html_url: Optional[str] = None
    url: Optional[str] = None
    body: Optional[str] = None
    merged: bool = False
    user: Optional[User] = None

    @property
    def link(self) -> Optional[str]:
        return self.html_url or self.url


class Comment(BaseModel):
    body: Optional[str] = None
    user: Optional[User] = None


class Review(BaseModel):
    body: Optional[str] = None
    user: Optional[User] = None


class WebhookPayload(BaseModel):
    """The subset of a webhook body used for classification and rendering."""
    action: str = ""
    repository: Optional[Repository] = None
    sender: Optional[User] = None
    issue: Optional[Issue] = None
    pull_request: Optional[PullRequest] = None
    comment: Optional[Comment] = None
    review: Optional[Review] = None
    # Shared secret sent inside the body by early Gitea releases
    secret: Optional[str] = Field(default=None, repr=False)


class InboundEvent(BaseModel):
    """A verified webhook delivery."""
    provider: ProviderType
    event_type: str
    delivery_id: Optional[str] = None
    payload: WebhookPayload
