import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

import redis.asyncio as redis

from messaging.config import get_settings


logger = logging.getLogger(__name__)

MessageHandler = Callable[[str], Awaitable[None]]


class LocalBus:
    """In-process fan-out used when no redis is configured."""

    enabled = False

    def __init__(self) -> None:
        self._handlers: Dict[str, List[MessageHandler]] = {}

    async def publish(self, channel: str, message: str) -> None:
        for handler in list(self._handlers.get(channel, [])):
            try:
                await handler(message)
            except Exception:
                logger.exception("Realtime handler failed on %s", channel)

    async def subscribe(self, channel: str, on_message: MessageHandler):
        handlers = self._handlers.setdefault(channel, [])
        handlers.append(on_message)
        bus = self

        class _Sub:
            def __init__(self_inner) -> None:
                self_inner._done = asyncio.Event()

            async def run(self_inner):
                await self_inner._done.wait()

            async def cancel(self_inner):
                bus._remove(channel, on_message)
                self_inner._done.set()

        return _Sub()

    def subscriber_count(self, channel: str) -> int:
        return len(self._handlers.get(channel, []))

    def _remove(self, channel: str, on_message: MessageHandler) -> None:
        handlers = self._handlers.get(channel)
        if not handlers:
            return
        try:
            handlers.remove(on_message)
        except ValueError:
            pass
        if not handlers:
            del self._handlers[channel]


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: MessageHandler):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                        if msg and msg.get("type") == "message":
                            data = msg.get("data")
                            if isinstance(data, bytes):
                                data = data.decode("utf-8")
                            await on_message(data)
                    except asyncio.CancelledError:
                        raise
                    except Exception:
                        logger.exception("Realtime subscription error on %s", channel)
                        await asyncio.sleep(0.5)

            async def cancel(self_inner):
                self_inner._running = False
                try:
                    await pubsub.unsubscribe(channel)
                    await pubsub.aclose()
                except Exception:
                    logger.warning("Could not unsubscribe from %s", channel, exc_info=True)

        return _Sub()


_bus: Optional[object] = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    url = get_settings().redis_url
    if not url:
        _bus = LocalBus()
    else:
        _bus = RedisBus(url)
    return _bus
