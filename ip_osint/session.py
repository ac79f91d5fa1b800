"""
session.py - Command/event channel to one target (tab)

A ProtocolSession is a flattened CDP session on the shared browser
connection: commands carry its sessionId, and events are kept only when
their sessionId is ours. The listener table belongs to the session; nothing
outside it is registered on the connection except the one receiver added on
attach().
"""

import logging
from typing import Callable, Dict, List, Optional

from .connection import BrowserConnection
from .errors import CDPError, NotAttachedError, SessionConnectionError

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict], None]


class ProtocolSession:
    """
    Usage:
        session = ProtocolSession(conn, target_id)
        await session.attach()
        await session.send("Page", "enable")
        session.on("Page.loadEventFired", handler)
        await session.detach()
    """

    def __init__(self, connection: BrowserConnection, target_id: str):
        self.connection = connection
        self.target_id = target_id
        self.session_id: Optional[str] = None
        self.attached = False
        self._listeners: Dict[str, List[EventHandler]] = {}

    async def attach(self) -> "ProtocolSession":
        """Attach to the target. No-op when already attached."""
        if self.attached:
            return self

        try:
            result = await self.connection.call(
                "Target.attachToTarget",
                {"targetId": self.target_id, "flatten": True}
            )
        except CDPError as e:
            raise SessionConnectionError(f"Cannot attach to target {self.target_id}: {e}") from e

        session_id = result.get("sessionId")
        if not session_id:
            raise SessionConnectionError(f"Target {self.target_id} returned no sessionId")

        self.session_id = session_id
        self.attached = True
        self.connection.subscribe(self._on_event)
        logger.debug(f"Attached to {self.target_id} (session {session_id[:8]})")
        return self

    async def detach(self):
        """
        Release the channel and drop every listener. Safe to call repeatedly.

        Local state is cleared before the remote call, so the session counts
        as detached even when Chrome rejects the request.
        """
        if not self.attached:
            return

        self.attached = False
        self.connection.unsubscribe(self._on_event)
        self._listeners.clear()
        session_id, self.session_id = self.session_id, None

        try:
            await self.connection.call("Target.detachFromTarget", {"sessionId": session_id})
        except CDPError as e:
            raise SessionConnectionError(f"Detach from {self.target_id} failed: {e}") from e
        logger.debug(f"Detached from {self.target_id}")

    async def send(self, domain: str, method: str, params: Optional[dict] = None) -> dict:
        if not self.attached:
            raise NotAttachedError(f"Session on {self.target_id} not attached. Call attach() first.")
        return await self.connection.call(f"{domain}.{method}", params, session_id=self.session_id)

    def on(self, event: str, handler: EventHandler):
        self._listeners.setdefault(event, []).append(handler)

    def off(self, event: str, handler: EventHandler):
        handlers = self._listeners.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def _on_event(self, session_id: Optional[str], method: str, params: dict):
        if session_id is None and method == "Target.detachedFromTarget":
            # Browser-level notice: the tab went away under us
            if self.attached and params.get("sessionId") == self.session_id:
                logger.warning(f"Target {self.target_id} detached by the browser")
                self.attached = False
                self.connection.unsubscribe(self._on_event)
                self._listeners.clear()
                self.session_id = None
            return

        if not self.attached or session_id != self.session_id:
            return

        for handler in list(self._listeners.get(method, ())):
            # Skip handlers removed by an earlier handler of this same event
            if handler not in self._listeners.get(method, ()):
                continue
            try:
                handler(params)
            except Exception:
                logger.exception(f"Listener for {method} failed on {self.target_id}")

    async def __aenter__(self):
        return await self.attach()

    async def __aexit__(self, *exc):
        await self.detach()
