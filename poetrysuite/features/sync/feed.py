"""Transport contract for change feeds. Implementations live outside the engine."""

from typing import Any, AsyncIterator, Dict, Protocol


class ChannelDisconnected(ConnectionError):
    """The transport dropped a subscription; the consumer should reconnect."""


class FeedSubscription(Protocol):
    """An open, user-scoped subscription delivering raw change messages in FIFO order.

    Iteration ends when the feed closes the channel for good and raises
    ChannelDisconnected when the connection drops.
    """

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        ...

    async def close(self) -> None:
        ...


class ChangeFeed(Protocol):
    async def subscribe(self, table: str, user_id: str) -> FeedSubscription:
        ...
