"""
Configuration management for the webhook relay.
"""

import os
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _split_env(name: str, default: str) -> frozenset[str]:
    """Read a comma separated list of logins from the environment."""
    raw = os.getenv(name, default)
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


class ChannelConfig(BaseModel):
    """traQ channel IDs that notifications are posted to."""
    model_config = ConfigDict(frozen=True)

    # #t/S/logs
    logs: str = Field(default="0fd85b8f-b48d-44c8-b2b9-cddd54b1e8a4")
    # #t/S/l/issue
    issue: str = Field(default="ec627454-291e-4114-a995-379630d2fe0a")
    # #t/S/l/pr
    pr: str = Field(default="ee715867-d978-447b-a4fd-95071b1dbcef")

    def resolve(self, name: str) -> str:
        """Return the channel ID registered under ``name``."""
        return getattr(self, name)


class SuppressionConfig(BaseModel):
    """Actors whose activity is muted or only partially rendered."""
    model_config = ConfigDict(frozen=True)

    # No message at all for comments written by these users
    comment_ignored: frozenset[str] = Field(
        default=frozenset({"codecov[bot]", "github-actions[bot]"})
    )
    # Pull request bodies written by these users are left out
    body_omitted: frozenset[str] = Field(
        default=frozenset({"dependabot[bot]", "renovate[bot]"})
    )
    # No message for edits made by these users
    edit_ignored: frozenset[str] = Field(
        default=frozenset({"dependabot[bot]", "renovate[bot]", "codecov[bot]"})
    )


class RelayConfig(BaseModel):
    """Main relay configuration."""
    model_config = ConfigDict(frozen=True)

    # Inbound verification
    github_secret: Optional[str] = Field(default=None)
    gitea_secret: Optional[str] = Field(default=None)
    gitea_allow_body_secret: bool = Field(default=False)

    # Outbound traQ webhook
    webhook_secret: Optional[str] = Field(default=None)
    traq_webhook_url: Optional[str] = Field(default=None)
    send_timeout: int = Field(default=30)

    channels: ChannelConfig = Field(default_factory=ChannelConfig)
    suppression: SuppressionConfig = Field(default_factory=SuppressionConfig)

    # Server settings
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default="logs/webhook_relay.log")

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Create configuration from environment variables."""
        defaults = ChannelConfig()
        return cls(
            github_secret=os.getenv("GITHUB_SECRET"),
            gitea_secret=os.getenv("GITEA_SECRET"),
            gitea_allow_body_secret=os.getenv("GITEA_ALLOW_BODY_SECRET", "false").lower() == "true",
            webhook_secret=os.getenv("WEBHOOK_SECRET"),
            traq_webhook_url=os.getenv("TRAQ_WEBHOOK_URL"),
            send_timeout=int(os.getenv("SEND_TIMEOUT", "30")),
            channels=ChannelConfig(
                logs=os.getenv("LOGS_CHANNEL_ID", defaults.logs),
                issue=os.getenv("ISSUE_CHANNEL_ID", defaults.issue),
                pr=os.getenv("PR_CHANNEL_ID", defaults.pr),
            ),
            suppression=SuppressionConfig(
                comment_ignored=_split_env("COMMENT_IGNORED_USERS", "codecov[bot],github-actions[bot]"),
                body_omitted=_split_env("BODY_OMITTED_USERS", "dependabot[bot],renovate[bot]"),
                edit_ignored=_split_env("EDIT_IGNORED_USERS", "dependabot[bot],renovate[bot],codecov[bot]"),
            ),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", "logs/webhook_relay.log") or None,
        )
