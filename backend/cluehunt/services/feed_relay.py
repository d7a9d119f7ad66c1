from __future__ import annotations
import asyncio
import structlog
from redis import Redis
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from cluehunt.services.changefeed import ChangeFeed

log = structlog.get_logger()


class RedisRelay:
    """
    Carries change diffs between processes over one Redis pub/sub channel.
    `send` runs inside publish (sync, short timeouts); `pump` is the long-lived
    listener an API process runs to feed its local subscribers.
    """

    def __init__(self, url: str, channel: str, timeout: float = 1.0):
        self.url = url
        self.channel = channel
        # No connection is made until the first publish
        self._client = Redis.from_url(url, socket_connect_timeout=timeout, socket_timeout=timeout)

    def send(self, payload: str) -> None:
        try:
            self._client.publish(self.channel, payload)
        except RedisError as e:
            # Local subscribers already have the diff; remote ones resync on reconnect.
            log.warning("feed_relay_send_failed", channel=self.channel, error=str(e))

    async def pump(self, feed: ChangeFeed, reconnect_delay: float = 1.0) -> None:
        """Deliver diffs published elsewhere into `feed` until cancelled."""
        client = aioredis.Redis.from_url(self.url)
        try:
            while True:
                pubsub = client.pubsub()
                try:
                    await pubsub.subscribe(self.channel)
                    log.info("feed_relay_listening", channel=self.channel)
                    async for message in pubsub.listen():
                        if message.get("type") != "message":
                            continue
                        try:
                            feed.receive(message["data"])
                        except (ValueError, KeyError) as e:
                            log.warning("feed_relay_bad_payload", error=str(e))
                except RedisError as e:
                    log.warning("feed_relay_disconnected", channel=self.channel, error=str(e))
                    await asyncio.sleep(reconnect_delay)
                finally:
                    await pubsub.reset()
        finally:
            await client.aclose()
