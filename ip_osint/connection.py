"""
connection.py - Browser-level CDP websocket shared by every session

Chrome exposes one websocket for the whole browser at the URL advertised by
http://host:port/json/version. Commands are JSON messages:
  {"id": N, "method": "Domain.method", "params": {...}, "sessionId": "..."}
and Chrome answers with the same id:
  {"id": N, "result": {...}}  or  {"id": N, "error": {"message": "...", "code": -32000}}

Anything without an id is an event. Events from a flattened target session
carry its "sessionId"; they are handed as-is to the subscribed receivers,
which do their own filtering.
"""

import asyncio
import json
import logging
from typing import Callable, Dict, List, Optional

import aiohttp
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .config import Settings
from .errors import ProtocolError, SessionConnectionError, WaitTimeoutError

logger = logging.getLogger(__name__)

# receiver(session_id, method, params)
EventReceiver = Callable[[Optional[str], str, dict], None]


class BrowserConnection:
    """
    Asynchronous CDP client for the browser endpoint.

    Usage:
        async with BrowserConnection(settings) as conn:
            info = await conn.call("Browser.getVersion")
    """

    def __init__(self, settings: Optional[Settings] = None, ws_url: Optional[str] = None):
        self.settings = settings or Settings()
        self.ws_url = ws_url
        self.ws = None
        self.msg_id = 0
        self._pending: Dict[int, asyncio.Future] = {}
        self._receivers: List[EventReceiver] = []
        self._reader: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def connected(self) -> bool:
        return self.ws is not None and not self._closed

    async def _discover_ws_url(self) -> str:
        """Ask Chrome's HTTP debug endpoint for the browser websocket URL."""
        url = f"{self.settings.http_url}/json/version"
        try:
            async with aiohttp.ClientSession() as http:
                async with http.get(url, timeout=aiohttp.ClientTimeout(total=3)) as resp:
                    info = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SessionConnectionError(
                f"Chrome not reachable at {self.settings.http_url} "
                f"(start it with --remote-debugging-port={self.settings.cdp_port}): {e}"
            ) from e

        ws_url = info.get("webSocketDebuggerUrl") if isinstance(info, dict) else None
        if not ws_url:
            raise SessionConnectionError(f"No webSocketDebuggerUrl in {url}")
        return ws_url

    async def connect(self) -> "BrowserConnection":
        if self.connected:
            return self

        ws_url = self.ws_url or await self._discover_ws_url()
        try:
            self.ws = await websockets.connect(ws_url, max_size=50_000_000)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise SessionConnectionError(f"WebSocket connection failed ({ws_url}): {e}") from e

        self.ws_url = ws_url
        self._closed = False
        self._reader = asyncio.create_task(self._read_loop())
        logger.info(f"Connected to Chrome: {ws_url}")
        return self

    async def close(self):
        if self.ws is None:
            return
        ws, self.ws = self.ws, None
        self._closed = True

        if self._reader:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None

        try:
            await ws.close()
        except WebSocketException as e:
            logger.debug(f"Error closing websocket: {e}")

        self._fail_pending(SessionConnectionError("Browser connection closed"))
        logger.info("Chrome connection closed")

    async def __aenter__(self):
        return await self.connect()

    async def __aexit__(self, *exc):
        await self.close()

    # === Commands ===

    async def call(self, method: str, params: Optional[dict] = None,
                   session_id: Optional[str] = None, timeout: Optional[float] = None) -> dict:
        """
        Send one command and wait for the reply with the same id.

        Raises:
            SessionConnectionError: socket not open or closed while waiting.
            ProtocolError: Chrome answered with an error object.
            WaitTimeoutError: no reply within timeout (default command_timeout).
        """
        if not self.connected:
            raise SessionConnectionError(f"Not connected to Chrome (sending {method})")

        self.msg_id += 1
        msg_id = self.msg_id
        cmd = {"id": msg_id, "method": method}
        if params:
            cmd["params"] = params
        if session_id:
            cmd["sessionId"] = session_id

        future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future
        try:
            await self.ws.send(json.dumps(cmd))
            return await asyncio.wait_for(future, self.settings.command_timeout if timeout is None else timeout)
        except asyncio.TimeoutError:
            raise WaitTimeoutError(f"CDP timeout: {method}") from None
        except ConnectionClosed as e:
            raise SessionConnectionError(f"Connection closed during {method}: {e}") from e
        finally:
            self._pending.pop(msg_id, None)

    def _fail_pending(self, error: Exception):
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    # === Events ===

    def subscribe(self, receiver: EventReceiver):
        self._receivers.append(receiver)

    def unsubscribe(self, receiver: EventReceiver):
        try:
            self._receivers.remove(receiver)
        except ValueError:
            pass

    def dispatch(self, session_id: Optional[str], method: str, params: dict):
        """Hand one event to every receiver, in subscription order."""
        for receiver in list(self._receivers):
            try:
                receiver(session_id, method, params)
            except Exception:
                logger.exception(f"Event receiver failed on {method}")

    def _handle_message(self, message: dict):
        if "id" in message:
            future = self._pending.get(message["id"])
            if future is None or future.done():
                return
            if "error" in message:
                error = message["error"] or {}
                future.set_exception(ProtocolError(error.get("message", "CDP error"), error.get("code")))
            else:
                future.set_result(message.get("result", {}))
        elif "method" in message:
            self.dispatch(message.get("sessionId"), message["method"], message.get("params", {}))

    async def _read_loop(self):
        try:
            async for raw in self.ws:
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning(f"Ignoring non-JSON frame: {str(raw)[:80]}")
                    continue
                self._handle_message(message)
        except ConnectionClosed as e:
            logger.warning(f"Chrome closed the connection: {e}")
        finally:
            self._closed = True
            self._fail_pending(SessionConnectionError("Browser connection closed"))
