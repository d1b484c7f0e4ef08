"""Targeted best-effort push to live WebSocket channels, one per user."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol

from skyline.core.logging import get_logger
from skyline.core.security import generate_handshake_token
from skyline.realtime.events import ServerEvent

log = get_logger(__name__)


class Channel(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass
class _HandshakeToken:
    user_id: str
    expires_at: float


@dataclass
class _Outbox:
    """Frames waiting for one channel, drained by its own writer task."""
    user_id: str
    channel: Channel
    queue: asyncio.Queue
    writer: asyncio.Task | None = field(default=None, repr=False)


class EventNotifier:
    """
    Owns the user -> channel mapping and the pending handshake tokens.

    Created once per process (see skyline.main startup) and only touched from
    the event loop, so the maps need no locking. A channel is registered only
    after it presents a valid token; the newest registration for a user wins.

    push/broadcast only enqueue: each channel has a bounded outbox and a
    writer task, so a slow or half-open socket never holds up the request
    that produced the event. A send that fails or exceeds
    send_timeout_seconds drops the channel; a full outbox drops the event.
    Pushes are hints: the Notification document stays the source of truth.
    """

    def __init__(
        self,
        token_ttl_seconds: float = 60,
        sweep_interval_seconds: float = 30,
        send_timeout_seconds: float = 5,
        outbox_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.token_ttl_seconds = token_ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.send_timeout_seconds = send_timeout_seconds
        self.outbox_size = outbox_size
        self._clock = clock
        self._tokens: dict[str, _HandshakeToken] = {}
        self._outboxes: dict[str, _Outbox] = {}
        self._sweeper: asyncio.Task | None = None

    async def start(self) -> None:
        if self._sweeper is None and self.sweep_interval_seconds > 0:
            self._sweeper = asyncio.create_task(self._sweep_loop())
        log.info("notifier_started", token_ttl_seconds=self.token_ttl_seconds)

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        outboxes = list(self._outboxes.values())
        for outbox in outboxes:
            self._close(outbox)
        writers = [o.writer for o in outboxes if o.writer is not None]
        if writers:
            await asyncio.gather(*writers, return_exceptions=True)
        self._tokens.clear()
        log.info("notifier_stopped", channels=len(outboxes))

    # Handshake

    def issue_token(self, user_id: str) -> str:
        token = generate_handshake_token()
        self._tokens[token] = _HandshakeToken(user_id=user_id, expires_at=self._clock() + self.token_ttl_seconds)
        return token

    def authenticate(self, token: str, channel: Channel) -> str | None:
        """Consume token and register channel for its user. None if unknown or expired."""
        entry = self._tokens.pop(token, None)
        if entry is None:
            log.info("ws_auth_failed", reason="unknown_token")
            return None
        if entry.expires_at <= self._clock():
            log.info("ws_auth_failed", reason="expired_token", user_id=entry.user_id)
            return None
        previous = self._outboxes.get(entry.user_id)
        if previous is not None:
            self._close(previous)
        outbox = _Outbox(
            user_id=entry.user_id,
            channel=channel,
            queue=asyncio.Queue(maxsize=self.outbox_size),
        )
        outbox.writer = asyncio.create_task(self._write_loop(outbox))
        self._outboxes[entry.user_id] = outbox
        log.info("ws_registered", user_id=entry.user_id, superseded=previous is not None)
        return entry.user_id

    def sweep_expired(self) -> int:
        now = self._clock()
        expired = [t for t, entry in self._tokens.items() if entry.expires_at <= now]
        for t in expired:
            del self._tokens[t]
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            removed = self.sweep_expired()
            if removed:
                log.debug("ws_tokens_swept", removed=removed)

    # Channels

    def unregister(self, user_id: str, channel: Channel) -> None:
        """Drop the mapping only if it still points at this channel."""
        outbox = self._outboxes.get(user_id)
        if outbox is not None and outbox.channel is channel:
            self._close(outbox)
            log.info("ws_unregistered", user_id=user_id)

    def is_connected(self, user_id: str) -> bool:
        return user_id in self._outboxes

    @property
    def pending_tokens(self) -> int:
        return len(self._tokens)

    def _close(self, outbox: _Outbox) -> None:
        if self._outboxes.get(outbox.user_id) is outbox:
            del self._outboxes[outbox.user_id]
        while not outbox.queue.empty():
            outbox.queue.get_nowait()
            outbox.queue.task_done()
        if outbox.writer is not None and outbox.writer is not asyncio.current_task():
            outbox.writer.cancel()

    async def _write_loop(self, outbox: _Outbox) -> None:
        while True:
            event: ServerEvent = await outbox.queue.get()
            try:
                await asyncio.wait_for(outbox.channel.send_json(event.to_wire()), self.send_timeout_seconds)
            except Exception as e:
                # Dead or stuck socket: forget it, the client re-handshakes on reconnect
                log.warning(
                    "ws_push_failed",
                    user_id=outbox.user_id,
                    event_type=event.type,
                    error=repr(e),
                )
                self._close(outbox)
                return
            finally:
                outbox.queue.task_done()

    def _enqueue(self, outbox: _Outbox, event: ServerEvent) -> bool:
        try:
            outbox.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            log.warning("ws_outbox_full", user_id=outbox.user_id, event_type=event.type)
            return False

    async def push(self, user_id: str, event: ServerEvent) -> bool:
        """Queue event for the user's live channel. False when none is registered or its outbox is full."""
        outbox = self._outboxes.get(str(user_id))
        if outbox is None:
            return False
        return self._enqueue(outbox, event)

    async def broadcast(self, event: ServerEvent, user_ids: Iterable[str] | None = None) -> int:
        """Queue event for every registered channel, or only those of user_ids. Returns channels queued."""
        if user_ids is None:
            targets = list(self._outboxes.values())
        else:
            wanted = {str(u) for u in user_ids}
            targets = [o for u, o in self._outboxes.items() if u in wanted]
        return sum(1 for outbox in targets if self._enqueue(outbox, event))

    async def flush(self) -> None:
        """Wait until every queued frame has been sent or dropped."""
        await asyncio.gather(*(o.queue.join() for o in list(self._outboxes.values())))
