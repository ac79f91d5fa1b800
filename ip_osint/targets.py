"""
targets.py - Tab (target) lifecycle

Tabs are opened in the background with Target.createTarget and closed with
Target.closeTarget on the shared browser connection. Chrome is never started
or stopped from here; only the tabs we created are closed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .connection import BrowserConnection
from .errors import CDPError, ProtocolError, SessionConnectionError, TargetCreationError, WaitTimeoutError
from .session import ProtocolSession

logger = logging.getLogger(__name__)


@dataclass
class Target:
    """Handle on one tab created by TargetLifecycle."""
    target_id: str
    url: str
    closed: bool = False

    @property
    def short_id(self) -> str:
        return self.target_id[:8]


class TargetLifecycle:
    def __init__(self, connection: BrowserConnection, settings: Optional[Settings] = None):
        self.connection = connection
        self.settings = settings or connection.settings

    async def create(self, url: str, foreground: bool = False) -> Target:
        """
        Open a new tab on `url`. Background by default, so automation never
        steals focus from the operator's window.

        Raises:
            TargetCreationError: Chrome refused or returned no targetId.
        """
        try:
            result = await self.connection.call("Target.createTarget", {
                "url": url,
                "background": not foreground,
            })
        except CDPError as e:
            raise TargetCreationError(f"Failed to create tab for {url}: {e}") from e

        target_id = result.get("targetId")
        if not target_id:
            raise TargetCreationError(f"Chrome returned no targetId for {url}")

        target = Target(target_id=target_id, url=url)
        logger.info(f"Tab {target.short_id} created: {url}")
        return target

    async def destroy(self, target: Target):
        """Close the tab. Idempotent; errors are logged, never raised."""
        if target.closed:
            return
        target.closed = True

        try:
            await self.connection.call("Target.closeTarget", {"targetId": target.target_id})
            logger.info(f"Tab {target.short_id} closed")
        except Exception as e:
            logger.error(f"Failed to close tab {target.short_id}: {e}")

    async def await_loaded(self, target: Target, settle: Optional[float] = None,
                           timeout: Optional[float] = None):
        """
        Wait for the tab's document to reach "complete", then `settle` more
        seconds for dynamic content.

        The load listener is registered before readyState is read, so a
        transition happening in between is not missed.

        Raises:
            WaitTimeoutError: not loaded within `timeout` (load_timeout).
        """
        settle = self.settings.load_settle if settle is None else settle
        timeout = self.settings.load_timeout if timeout is None else timeout

        loop = asyncio.get_running_loop()
        loaded = loop.create_future()

        def on_load(params):
            if not loaded.done():
                loaded.set_result(None)

        session = ProtocolSession(self.connection, target.target_id)
        await session.attach()
        try:
            session.on("Page.loadEventFired", on_load)
            await session.send("Page", "enable")

            state = await self._ready_state(session)
            if state == "complete":
                logger.debug(f"Tab {target.short_id} already loaded")
            else:
                try:
                    await asyncio.wait_for(loaded, timeout)
                except asyncio.TimeoutError:
                    raise WaitTimeoutError(
                        f"Tab {target.short_id} did not finish loading within {timeout}s"
                    ) from None
        finally:
            session.off("Page.loadEventFired", on_load)
            try:
                await session.detach()
            except SessionConnectionError as e:
                logger.warning(f"Tab {target.short_id}: {e}")

        await asyncio.sleep(settle)

    @staticmethod
    async def _ready_state(session: ProtocolSession) -> Optional[str]:
        try:
            result = await session.send("Runtime", "evaluate", {
                "expression": "document.readyState",
                "returnByValue": True,
            })
        except ProtocolError:
            # No execution context yet: the document is still being created
            return None
        return (result.get("result") or {}).get("value")
