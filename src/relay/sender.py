"""
Outbound delivery of rendered messages to a traQ incoming webhook.
"""

from typing import Optional

import httpx
from loguru import logger

from .signature import sign_message


class DeliveryError(RuntimeError):
    """Raised when a message could not be posted to traQ."""


class MessageSender:
    """Posts Markdown messages to a traQ webhook, one request per message."""

    def __init__(self, webhook_url: Optional[str], secret: Optional[str], timeout: int = 30):
        self.webhook_url = webhook_url
        self.secret = secret
        self.timeout = timeout

    def build_headers(self, channel_id: str, text: str) -> dict[str, str]:
        headers = {
            "X-TRAQ-Channel-Id": channel_id,
            "Content-Type": "text/plain; charset=utf-8",
        }
        if self.secret:
            headers["X-TRAQ-Signature"] = sign_message(self.secret, text)
        return headers

    async def send(self, channel_id: str, text: str) -> None:
        """
        Post ``text`` to the given channel.

        Args:
            channel_id: Destination traQ channel ID
            text: Rendered Markdown message

        Raises:
            DeliveryError: On any transport failure or non-2xx response
        """
        if not self.webhook_url:
            logger.info("No traQ webhook URL configured, logging message only")
            logger.info(f"Message for channel {channel_id}:\n{text}")
            return

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.webhook_url,
                    content=text.encode("utf-8"),
                    headers=self.build_headers(channel_id, text),
                    timeout=self.timeout,
                )
                response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error(f"traQ webhook timeout: {self.webhook_url}")
            raise DeliveryError("traQ webhook timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"traQ webhook HTTP error: {e.response.status_code}")
            raise DeliveryError(f"traQ webhook returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"traQ webhook error: {e}")
            raise DeliveryError(str(e)) from e

        logger.info(f"Message posted to channel {channel_id}: {response.status_code}")
