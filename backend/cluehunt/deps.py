from __future__ import annotations
from functools import lru_cache
from redis import Redis
from rq import Queue
from cluehunt.config import settings
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.feed_relay import RedisRelay
from cluehunt.services.media_store import MediaStore, MinioMediaStore

def build_feed() -> ChangeFeed:
    relay = None
    if settings.feed_redis_channel:
        relay = RedisRelay(settings.redis_url, settings.feed_redis_channel)
    return ChangeFeed(queue_size=settings.feed_queue_size, relay=relay)

# One broker per process; every websocket subscriber hangs off it.
feed = build_feed()

def get_feed() -> ChangeFeed:
    return feed

@lru_cache
def get_media_store() -> MediaStore:
    # Built on first use so importing the app never touches the network
    return MinioMediaStore(
        settings.s3_endpoint,
        settings.s3_access_key,
        settings.s3_secret_key,
        settings.s3_bucket_uploads,
        public_base_url=settings.media_public_base_url,
        presign_expiry_seconds=settings.s3_presign_expiry_seconds,
    )

@lru_cache
def get_job_queue() -> Queue:
    # RQ queue (lazy single instance)
    return Queue("default", connection=Redis.from_url(settings.redis_url))
