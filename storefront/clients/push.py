import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from storefront.config import settings

logger = logging.getLogger(__name__)

# Events relayed from the server to local listeners
SERVER_EVENTS = (
    "auction:created",
    "auction:updated",
    "auction:deleted",
    "auction_started",
    "auction_ended",
    "bid_placed",
    "auction_status_changed",
    "auction_time_update",
    "auctions_updated",
)

# Events raised locally by the client itself
CONNECTED = "connected"
DISCONNECTED = "disconnected"
MAX_RECONNECT_ATTEMPTS_REACHED = "max_reconnect_attempts_reached"

GUEST_AUTH = {"token": "guest"}

Handler = Callable[[Any], Any]


class PushClient:
    """Socket.IO push-event client with a local publish/subscribe registry.

    Reconnects after a failed attempt or an unexpected disconnect, waiting
    `attempt * base_delay` seconds between tries, and gives up for good after
    `max_attempts` by emitting `max_reconnect_attempts_reached`.
    """

    def __init__(
        self,
        url: str = settings.WS_URL,
        max_attempts: int = settings.WS_MAX_RECONNECT_ATTEMPTS,
        base_delay: float = settings.WS_RECONNECT_DELAY,
        connect_timeout: float = settings.WS_CONNECT_TIMEOUT,
        sio: socketio.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.connect_timeout = connect_timeout
        self.reconnect_attempts = 0
        self.sio = sio or socketio.AsyncClient(reconnection=False)
        self._sleep = sleep
        self._listeners: dict[str, list[Handler]] = {}
        self._closing = False
        self._reconnect_task: asyncio.Task | None = None

        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on("connect_error", self._on_connect_error)
        for event in SERVER_EVENTS:
            self.sio.on(event, self._relay(event))

    # --- Local registry ---

    def on(self, event: str, handler: Handler):
        self._listeners.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Handler | None = None):
        if handler is None:
            self._listeners.pop(event, None)
            return
        handlers = self._listeners.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    async def _emit(self, event: str, data: Any):
        for handler in list(self._listeners.get(event, [])):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception(f"[Push] Listener for {event} failed: {e}")

    def _relay(self, event: str):
        async def handler(*args):
            await self._emit(event, args[0] if args else None)

        return handler

    # --- Connection lifecycle ---

    async def connect(self) -> bool:
        """Connect, retrying with linear backoff. Returns False after giving up."""
        self._closing = False
        if await self._try_connect():
            return True
        return await self._reconnect()

    async def _try_connect(self) -> bool:
        if self.sio.connected:
            return True
        try:
            await self.sio.connect(
                self.url,
                auth=GUEST_AUTH,
                transports=["websocket", "polling"],
                wait_timeout=self.connect_timeout,
            )
            return True
        except SocketConnectionError as e:
            logger.error(f"[Push] Connection error: {e}")
            return False

    async def _reconnect(self) -> bool:
        while await self._backoff():
            if await self._try_connect():
                return True
        return False

    async def _backoff(self) -> bool:
        if self._closing:
            return False
        if self.reconnect_attempts >= self.max_attempts:
            logger.error("[Push] Max reconnection attempts reached")
            await self._emit(MAX_RECONNECT_ATTEMPTS_REACHED, {})
            return False
        self.reconnect_attempts += 1
        delay = self.base_delay * self.reconnect_attempts
        logger.info(f"[Push] Reconnecting in {delay:.1f}s (attempt {self.reconnect_attempts}/{self.max_attempts})")
        await self._sleep(delay)
        return not self._closing

    async def _on_connect(self):
        self.reconnect_attempts = 0
        logger.info(f"[Push] Connected ({self.sio.sid})")
        await self._emit(CONNECTED, {"socket_id": self.sio.sid})

    async def _on_disconnect(self, reason: Any = None):
        logger.warning(f"[Push] Disconnected: {reason}")
        await self._emit(DISCONNECTED, {"reason": reason})
        if not self._closing and (self._reconnect_task is None or self._reconnect_task.done()):
            self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _on_connect_error(self, data: Any = None):
        logger.error(f"[Push] Server rejected connection: {data}")

    def is_connected(self) -> bool:
        return bool(self.sio.connected)

    async def disconnect(self):
        self._closing = True
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None
        if self.sio.connected:
            await self.sio.disconnect()

    async def reconnect(self) -> bool:
        await self.disconnect()
        self.reconnect_attempts = 0
        return await self.connect()

    # --- Outbound signals ---

    async def _send(self, event: str, payload: dict):
        if self.sio.connected:
            await self.sio.emit(event, payload)
        else:
            logger.debug(f"[Push] Not connected, dropping {event}")

    async def join_auction_room(self, auction_id: str):
        await self._send("join_auction", {"auctionId": auction_id})

    async def leave_auction_room(self, auction_id: str):
        await self._send("leave_auction", {"auctionId": auction_id})

    async def place_bid(self, auction_id: str, bid_amount: int):
        await self._send("place_bid", {"auctionId": auction_id, "bidAmount": bid_amount})
