"""Discord delivery through the bot REST API."""

import logging
from typing import Optional, Protocol

import httpx

from switchdex.config import settings

logger = logging.getLogger(__name__)


class MessageSender(Protocol):
    """Delivery capability: send content to one channel, report success."""

    async def send(self, channel_id: str, content: str) -> bool:
        ...


class DiscordSender:
    """Posts messages to Discord channels as the bot user."""

    def __init__(
        self,
        bot_token: Optional[str] = None,
        api_base: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = settings.discord_bot_token if bot_token is None else bot_token
        self.api_base = (api_base or settings.discord_api_base).rstrip("/")
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=30.0,
                headers={
                    "Authorization": f"Bot {self.bot_token}",
                    "User-Agent": "DiscordBot (https://github.com/switchdex, 0.1.0)",
                },
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def send(self, channel_id: str, content: str) -> bool:
        """
        Send a message to a channel.

        Args:
            channel_id: Discord channel ID
            content: Message content (mentions are allowed for roles only)

        Returns:
            True if Discord accepted the message
        """
        if not self.bot_token:
            logger.warning(f"No Discord bot token configured, dropping message for {channel_id}")
            return False

        client = await self._get_client()
        payload = {
            "content": content,
            "allowed_mentions": {"parse": ["roles"]},
        }

        try:
            response = await client.post(
                f"{self.api_base}/channels/{channel_id}/messages",
                json=payload,
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to send Discord message to {channel_id}: {e}")
            return False

        if response.status_code >= 400:
            logger.error(
                f"Discord rejected message for {channel_id}: HTTP {response.status_code} "
                f"{response.text[:200]}"
            )
            return False

        logger.debug(f"Sent Discord message to {channel_id}")
        return True
