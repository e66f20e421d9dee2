## docsign/notifications/sinks.py

"""
Event sinks the outbox publishes to.

The default sink publishes every event on a Redis pub/sub channel named
``{event_channel_prefix}:{event_type}``; email and webhook delivery subscribe
to those channels.
"""

# Standard library imports
import json
from typing import Any, Dict

# Third party imports
import redis.asyncio as aioredis

# Local imports
from docsign.core.config import settings
from docsign.utils.logger import get_logger

logger = get_logger(__name__)


class EventSink:
    """Interface of an event sink"""

    async def publish(self, event_type: str, message: Dict[str, Any]) -> None:
        raise NotImplementedError


class RedisEventSink(EventSink):
    """Publishes signing events over Redis pub/sub"""

    def __init__(self, url: str = None, channel_prefix: str = None):
        self.url = url or settings.event_sink_url
        self.channel_prefix = channel_prefix or settings.event_channel_prefix

    def channel_for(self, event_type: str) -> str:
        return f"{self.channel_prefix}:{event_type}"

    async def publish(self, event_type: str, message: Dict[str, Any]) -> None:
        client = aioredis.from_url(self.url, decode_responses=True)
        try:
            receivers = await client.publish(self.channel_for(event_type), json.dumps(message, default=str))
            logger.debug("Signing event published", event_type=event_type, receivers=receivers)
        finally:
            await client.aclose()


_default_sink = RedisEventSink()


def get_event_sink() -> EventSink:
    """
    Dependency returning the configured event sink
    """
    return _default_sink
