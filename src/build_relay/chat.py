import asyncio

import aiohttp
from sanic.log import logger

from build_relay.exceptions import DispatchError
from build_relay.models import ChatMessage
from build_relay import metrics


class ChatWebhook:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        url: str,
        timeout: float | None = None,
    ):
        self.session = session
        self.url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None

    async def send(self, message: ChatMessage):
        payload = message.model_dump(exclude_none=True)

        kwargs = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout

        logger.debug("Posting chat message to webhook")
        with metrics.track_dispatch():
            try:
                async with self.session.post(
                    self.url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    **kwargs,
                ) as resp:
                    if not 200 <= resp.status < 300:
                        raise DispatchError(
                            f"Chat webhook responded with status {resp.status}",
                            status=resp.status,
                        )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise DispatchError(f"Chat webhook request failed: {e}") from e

        metrics.notifications_sent_total.inc()
        logger.debug("Chat webhook accepted the message")
