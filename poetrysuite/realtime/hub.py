"""
poetrysuite/realtime/hub.py
In-memory change-feed hub.

Rooms are keyed by (table, user_id); every subscriber in a room receives the
room's messages in publish order. In-process ChangeFeed implementation for
development and tests.
"""

from typing import Any, Dict, Optional, Set, Tuple
import asyncio
import logging

from poetrysuite.features.sync.feed import ChannelDisconnected

logger = logging.getLogger(__name__)

_CLOSE = object()
_DROP = object()

RoomKey = Tuple[str, str]


class HubSubscription:
    """One subscriber's queue; async-iterates raw change messages."""

    def __init__(self, hub: "ChangeFeedHub", key: RoomKey):
        self._hub = hub
        self._key = key
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False

    @property
    def table(self) -> str:
        return self._key[0]

    @property
    def user_id(self) -> str:
        return self._key[1]

    def _put(self, item: Any) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    def __aiter__(self) -> "HubSubscription":
        return self

    async def __anext__(self) -> Dict[str, Any]:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if item is _DROP:
            raise ChannelDisconnected(f"{self.table} feed dropped for {self.user_id}")
        return item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._hub._unregister(self._key, self)


class ChangeFeedHub:
    """
    In-memory room-per-(table, user) broadcast hub.

    ``disconnect`` simulates a transport drop (subscribers should reconnect);
    ``close_channel`` ends the room for good.
    """

    def __init__(self):
        # (table, user_id) -> live subscriptions
        self._rooms: Dict[RoomKey, Set[HubSubscription]] = {}
        self._lock = asyncio.Lock()
        self._refuse: Set[RoomKey] = set()

    async def subscribe(self, table: str, user_id: str) -> HubSubscription:
        key = (table, str(user_id))
        async with self._lock:
            if key in self._refuse:
                raise ChannelDisconnected(f"{table} feed unavailable for {user_id}")
            subscription = HubSubscription(self, key)
            self._rooms.setdefault(key, set()).add(subscription)
            logger.debug(f"[HUB] Subscribed to {table} for {user_id}. Total: {len(self._rooms[key])}")
        return subscription

    async def _unregister(self, key: RoomKey, subscription: HubSubscription) -> None:
        async with self._lock:
            room = self._rooms.get(key)
            if room is None:
                return
            room.discard(subscription)
            if not room:
                del self._rooms[key]
                logger.debug(f"[HUB] Cleaned up empty room {key[0]}:{key[1]}")

    async def _room(self, table: str, user_id: str) -> Set[HubSubscription]:
        async with self._lock:
            return set(self._rooms.get((table, str(user_id)), set()))

    async def publish(self, table: str, user_id: str, message: Dict[str, Any]) -> int:
        """Deliver a message to every subscriber of the room; returns the fan-out."""
        subscribers = await self._room(table, user_id)
        for subscription in subscribers:
            subscription._put(message)
        return len(subscribers)

    async def disconnect(self, table: str, user_id: str, *, refuse_reconnect: bool = False) -> None:
        """Drop every subscriber of the room; optionally refuse new subscriptions."""
        key = (table, str(user_id))
        async with self._lock:
            subscribers = self._rooms.pop(key, set())
            if refuse_reconnect:
                self._refuse.add(key)
        for subscription in subscribers:
            subscription._put(_DROP)
        logger.debug(f"[HUB] Dropped {len(subscribers)} subscriber(s) from {table}:{user_id}")

    async def close_channel(self, table: str, user_id: str) -> None:
        """End the room; subscribers see the end of iteration."""
        async with self._lock:
            subscribers = self._rooms.pop((table, str(user_id)), set())
        for subscription in subscribers:
            subscription._put(_CLOSE)

    async def get_room_size(self, table: str, user_id: Optional[str] = None) -> int:
        """Number of subscribers in one room, or across a table when user_id is None."""
        async with self._lock:
            if user_id is not None:
                return len(self._rooms.get((table, str(user_id)), set()))
            return sum(len(subs) for (t, _), subs in self._rooms.items() if t == table)
