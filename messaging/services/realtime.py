import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from messaging.schemas.events import ChangeEvent, conversation_channel


logger = logging.getLogger(__name__)

EventHandler = Callable[[ChangeEvent], Union[Awaitable[None], None]]


class RealtimeSubscription:
    """Single change-feed channel following the open conversation."""

    def __init__(self, bus, on_event: EventHandler) -> None:
        self._bus = bus
        self._on_event = on_event
        self._conversation_id: Optional[str] = None
        self._subscriber: Any = None
        self._task: Optional[asyncio.Task] = None

    @property
    def conversation_id(self) -> Optional[str]:
        return self._conversation_id

    @property
    def is_open(self) -> bool:
        return self._subscriber is not None

    async def open(self, conversation_id: str) -> None:
        if self._conversation_id == conversation_id and self.is_open:
            return
        await self.close()
        self._conversation_id = conversation_id
        self._subscriber = await self._bus.subscribe(conversation_channel(conversation_id), self._dispatch)
        self._task = asyncio.create_task(self._subscriber.run())

    async def close(self) -> None:
        subscriber, task = self._subscriber, self._task
        self._subscriber = None
        self._task = None
        self._conversation_id = None
        if subscriber is not None:
            await subscriber.cancel()
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _dispatch(self, raw: str) -> None:
        try:
            event = ChangeEvent.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping malformed change event: %r", raw[:200])
            return
        if event.conversation_id != self._conversation_id:
            return
        result = self._on_event(event)
        if inspect.isawaitable(result):
            await result
