"""Channel Registry - open WebSocket channels per principal"""
import asyncio
import threading
from typing import Any, Dict, Iterable, List, Optional, Set

from ..domain.models import Principal
from ..domain.enums import Role
from ..utils.logger import get_logger

logger = get_logger(__name__)


class Channel:
    """One open WebSocket, tagged with the principal it was opened for"""

    def __init__(self, websocket: Any, principal: Principal, loop: asyncio.AbstractEventLoop):
        self.websocket = websocket
        self.principal_id = principal.principal_id
        self.role = principal.role
        self.enterprise_id = principal.enterprise_id
        self.loop = loop

    async def deliver(self, event: str, payload: Dict[str, Any]) -> None:
        await self.websocket.send_json({"event": event, "data": payload})


class ChannelRegistry:
    """
    In-process registry of connected channels.

    Sends are best effort: only channels open at send time receive the
    event, nothing is queued for later. Each delivery is its own task, so a
    slow or broken socket never delays other recipients or the caller.
    """

    def __init__(self):
        self._channels: Dict[str, List[Channel]] = {}
        self._lock = threading.Lock()
        self._pending: Set[asyncio.Future] = set()

    async def connect(self, websocket: Any, principal: Principal) -> Channel:
        await websocket.accept()
        channel = Channel(websocket, principal, asyncio.get_running_loop())
        with self._lock:
            self._channels.setdefault(channel.principal_id, []).append(channel)
        logger.info(
            f"Channel opened for {channel.principal_id}",
            extra={"principal_id": channel.principal_id, "enterprise_id": channel.enterprise_id}
        )
        return channel

    def disconnect(self, channel: Channel) -> None:
        with self._lock:
            channels = self._channels.get(channel.principal_id, [])
            if channel in channels:
                channels.remove(channel)
            if not channels:
                self._channels.pop(channel.principal_id, None)

    def is_connected(self, principal_id: str) -> bool:
        with self._lock:
            return bool(self._channels.get(principal_id))

    # =========================================================================
    # Delivery
    # =========================================================================

    def send(self, principal_id: str, event: str, payload: Dict[str, Any]) -> bool:
        """Schedule delivery to every channel of one principal"""
        with self._lock:
            channels = list(self._channels.get(principal_id, []))
        for channel in channels:
            self._schedule(channel, event, payload)
        return bool(channels)

    def broadcast_to_enterprise_admins(
        self,
        enterprise_id: str,
        event: str,
        payload: Dict[str, Any],
        exclude: Iterable[str] = ()
    ) -> Set[str]:
        """Deliver to connected admins of an enterprise; returns who was reached"""
        return self._broadcast(
            lambda ch: ch.role == Role.ADMIN and ch.enterprise_id == enterprise_id,
            event, payload, set(exclude)
        )

    def broadcast_to_superadmins(
        self,
        event: str,
        payload: Dict[str, Any],
        exclude: Iterable[str] = ()
    ) -> Set[str]:
        return self._broadcast(lambda ch: ch.role == Role.SUPERADMIN, event, payload, set(exclude))

    def _broadcast(self, predicate, event: str, payload: Dict[str, Any], exclude: Set[str]) -> Set[str]:
        with self._lock:
            targets = [
                ch for channels in self._channels.values() for ch in channels
                if ch.principal_id not in exclude and predicate(ch)
            ]
        for channel in targets:
            self._schedule(channel, event, payload)
        return {ch.principal_id for ch in targets}

    def _schedule(self, channel: Channel, event: str, payload: Dict[str, Any]) -> None:
        try:
            running: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        coro = self._deliver(channel, event, payload)
        if running is channel.loop:
            future = running.create_task(coro)
        elif channel.loop.is_running():
            future = asyncio.run_coroutine_threadsafe(coro, channel.loop)
        else:
            coro.close()
            self.disconnect(channel)
            return

        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    async def _deliver(self, channel: Channel, event: str, payload: Dict[str, Any]) -> None:
        try:
            await channel.deliver(event, payload)
        except Exception as e:
            logger.warning(
                f"Dropping channel for {channel.principal_id}: {e}",
                extra={"principal_id": channel.principal_id, "event": event}
            )
            self.disconnect(channel)


_registry: Optional[ChannelRegistry] = None


def get_channel_registry() -> ChannelRegistry:
    """Process-wide registry shared by the WebSocket route and services"""
    global _registry
    if _registry is None:
        _registry = ChannelRegistry()
    return _registry
