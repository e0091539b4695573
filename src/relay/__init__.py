"""
Webhook relay module.

This module receives GitHub and Gitea webhooks, verifies them,
renders issue and pull request activity as Markdown and posts
it to traQ channels.
"""

from .webhook_server import WebhookServer, create_app
from .sender import MessageSender, DeliveryError

__all__ = [
    "WebhookServer",
    "create_app",
    "MessageSender",
    "DeliveryError"
]
