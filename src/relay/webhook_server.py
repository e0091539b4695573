"""
Webhook server relaying GitHub and Gitea events to traQ.
Handles signature verification, event classification, rendering and delivery.
"""

from datetime import datetime
from typing import Mapping, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from loguru import logger
from pydantic import ValidationError

from config import RelayConfig

from .classifier import classify
from .models import InboundEvent, ProviderType, WebhookPayload
from .renderer import render_event
from .sender import DeliveryError, MessageSender
from .signature import (
    GITEA_SIGNATURE_HEADER,
    verify_gitea_body_secret,
    verify_gitea_signature,
    verify_github_signature,
)


def detect_provider(headers: Mapping[str, str]) -> ProviderType:
    """Gitea marks its deliveries with X-Gitea-Delivery; everything else is GitHub."""
    if headers.get("X-Gitea-Delivery"):
        return ProviderType.GITEA
    return ProviderType.GITHUB


class WebhookServer:
    """Main webhook server class."""

    # loguru sink id per log file, shared by every app built in this process
    _log_sinks: dict[str, int] = {}

    def __init__(self, config: RelayConfig, sender: Optional[MessageSender] = None):
        self.config = config
        self.sender = sender or MessageSender(
            config.traq_webhook_url,
            config.webhook_secret,
            timeout=config.send_timeout,
        )
        self.app = FastAPI(title="traQ Webhook Relay", version="1.0.0")
        self._setup_routes()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging."""
        log_file = self.config.log_file
        if log_file and log_file not in WebhookServer._log_sinks:
            WebhookServer._log_sinks[log_file] = logger.add(
                log_file,
                rotation="1 day",
                retention="30 days",
                level=self.config.log_level
            )
        if not self.config.github_secret:
            logger.warning("GITHUB_SECRET is not set, GitHub deliveries will be rejected")
        if not self.config.gitea_secret:
            logger.warning("GITEA_SECRET is not set, Gitea deliveries will be rejected")

    def _setup_routes(self):
        """Setup FastAPI routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": datetime.now().isoformat()}

        async def webhook(request: Request):
            """Handle GitHub and Gitea webhooks."""
            try:
                raw_body = await request.body()
                return await self.handle(request.headers, raw_body)
            except HTTPException:
                raise
            except DeliveryError as e:
                logger.error(f"Failed to deliver message: {e}")
                raise HTTPException(status_code=502, detail="Failed to deliver message")
            except Exception as e:
                logger.exception(f"Error processing webhook: {e}")
                raise HTTPException(status_code=500, detail="Internal server error")

        self.app.add_api_route("/webhooks", webhook, methods=["POST"], response_class=PlainTextResponse)
        self.app.add_api_route("/", webhook, methods=["POST"], response_class=PlainTextResponse)

    async def handle(self, headers: Mapping[str, str], raw_body: bytes) -> PlainTextResponse:
        """Run one delivery through verify, classify, render and send."""
        provider = detect_provider(headers)
        self._authenticate(provider, headers, raw_body)

        try:
            payload = WebhookPayload.model_validate_json(raw_body)
        except ValidationError as e:
            logger.warning(f"Invalid {provider.value} payload: {e}")
            raise HTTPException(status_code=400, detail="Invalid payload")

        event = InboundEvent(
            provider=provider,
            event_type=headers.get("X-GitHub-Event") or headers.get("X-Gitea-Event") or "",
            delivery_id=headers.get("X-GitHub-Delivery") or headers.get("X-Gitea-Delivery"),
            payload=payload,
        )
        logger.info(f"Received {event.provider.value} event: {event.event_type}/{payload.action}, "
                    f"delivery: {event.delivery_id}")

        rule = classify(event.event_type, payload)
        if rule is None:
            logger.info(f"Ignoring event: {event.event_type}/{payload.action}")
            return PlainTextResponse("Other Action")

        text = render_event(rule, payload, self.config.suppression)
        if text is None:
            logger.info(f"Suppressed {rule.name} notification for {event.delivery_id}")
            return PlainTextResponse("OK")

        channel_id = self.config.channels.resolve(rule.channel)
        logger.info(f"Relaying {rule.name} to channel {channel_id}")
        await self.sender.send(channel_id, text)
        return PlainTextResponse("OK")

    def _authenticate(self, provider: ProviderType, headers: Mapping[str, str], raw_body: bytes):
        """Reject the request with 403 unless its signature or secret checks out."""
        if provider is ProviderType.GITHUB:
            if not verify_github_signature(self.config.github_secret, headers, raw_body):
                logger.warning("Rejected GitHub delivery: X-Hub-Signature mis-match")
                raise HTTPException(status_code=403, detail="X-Hub-Signature mis-match")
            return

        if headers.get(GITEA_SIGNATURE_HEADER) or not self.config.gitea_allow_body_secret:
            if not verify_gitea_signature(self.config.gitea_secret, headers, raw_body):
                logger.warning("Rejected Gitea delivery: X-Gitea-Signature mis-match")
                raise HTTPException(status_code=403, detail="X-Gitea-Signature mis-match")
            return

        if not verify_gitea_body_secret(self.config.gitea_secret, raw_body):
            logger.warning("Rejected Gitea delivery: secret mis-match")
            raise HTTPException(status_code=403, detail="Secret mis-match")


def create_app(config: Optional[RelayConfig] = None, sender: Optional[MessageSender] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if config is None:
        config = RelayConfig()

    server = WebhookServer(config, sender)
    return server.app
