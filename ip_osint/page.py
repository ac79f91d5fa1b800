"""
page.py - High-level page automation on top of one ProtocolSession

Each method composes a few CDP commands with polling or event waits:
  - navigate():               Page.enable + Page.navigate, then load event OR fallback delay
  - wait_for_selector():      Runtime.evaluate lookup every poll_interval until match/timeout
  - click() / fill():         bounding box by evaluation + Input.dispatchMouseEvent / dispatchKeyEvent
  - text_content() & co:      single Runtime.evaluate, tolerant of missing elements
  - wait_for_network_idle():  Network.* event bookkeeping with an idle timer

Selectors never get pasted into JavaScript source. DOM helpers below are
function literals, called with JSON-encoded arguments by _call_expression().
"""

import asyncio
import json
import logging
from typing import Any, List, Optional

from .config import ROOT_SELECTORS, Settings
from .errors import ElementNotFoundError, ProtocolError, WaitTimeoutError
from .session import ProtocolSession

logger = logging.getLogger(__name__)


# =============================================================================
# DOM HELPERS (JavaScript, evaluated with returnByValue)
# =============================================================================

_LOOKUP_JS = """(selector) => {
    const el = document.querySelector(selector);
    if (!el) return {found: false, visible: false};
    return {found: true, visible: !!(el.offsetParent || el.getClientRects().length)};
}"""

_CENTER_JS = """(selector) => {
    const el = document.querySelector(selector);
    if (!el) return null;
    const rect = el.getBoundingClientRect();
    return {x: rect.left + rect.width / 2, y: rect.top + rect.height / 2};
}"""

_TEXT_JS = """(selector) => {
    const el = document.querySelector(selector);
    return el ? el.textContent.trim() : null;
}"""

_TEXTS_JS = """(selector) => Array.from(document.querySelectorAll(selector))
    .map(el => el.textContent.trim())
    .filter(text => text)"""

_ATTRIBUTE_JS = """(selector, name) => {
    const el = document.querySelector(selector);
    return el ? el.getAttribute(name) : null;
}"""

_SCROLL_JS = """(selector) => {
    const el = document.querySelector(selector);
    if (el) el.scrollIntoView({behavior: 'smooth', block: 'center'});
    return !!el;
}"""

_INNER_TEXT_JS = """(selector, limit) => {
    const root = (selector && document.querySelector(selector)) || document.body;
    const text = root ? root.innerText : '';
    return limit ? text.substring(0, limit) : text;
}"""

# Ctrl+A, with the editing command attached so it also works on macOS builds
_SELECT_ALL = (
    {"type": "rawKeyDown", "key": "Control", "code": "ControlLeft",
     "windowsVirtualKeyCode": 17, "modifiers": 2},
    {"type": "rawKeyDown", "key": "a", "code": "KeyA",
     "windowsVirtualKeyCode": 65, "modifiers": 2, "commands": ["selectAll"]},
    {"type": "keyUp", "key": "a", "code": "KeyA",
     "windowsVirtualKeyCode": 65, "modifiers": 2},
    {"type": "keyUp", "key": "Control", "code": "ControlLeft",
     "windowsVirtualKeyCode": 17},
)


def _call_expression(function_source: str, *args) -> str:
    """Build `(fn)(arg1, arg2)` with every argument JSON-encoded."""
    encoded = ", ".join(json.dumps(arg) for arg in args)
    return f"({function_source})({encoded})"


class PageAutomation:
    """
    Playwright-like page object bound to one attached session.

    Usage:
        page = PageAutomation(session)
        await page.navigate("https://ipinfo.io/8.8.8.8")
        await page.wait_for_selector("h1", timeout=10)
        city = await page.text_content(".city")
    """

    def __init__(self, session: ProtocolSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or Settings()

    @property
    def target_id(self) -> str:
        return self.session.target_id

    # =========================================================================
    # SCRIPT EVALUATION
    # =========================================================================

    async def evaluate(self, expression: str) -> Any:
        """
        Run a JavaScript expression in the page and return its value by copy.

        Promises are awaited. A thrown exception in the page surfaces as
        ProtocolError with the exception description.
        """
        result = await self.session.send("Runtime", "evaluate", {
            "expression": expression,
            "returnByValue": True,
            "awaitPromise": True,
        })
        details = result.get("exceptionDetails")
        if details:
            exception = details.get("exception") or {}
            raise ProtocolError(exception.get("description") or details.get("text") or "JavaScript exception")
        return (result.get("result") or {}).get("value")

    async def _call(self, function_source: str, *args) -> Any:
        return await self.evaluate(_call_expression(function_source, *args))

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    async def navigate(self, url: str) -> str:
        """
        Navigate and wait for the load event, or navigate_fallback seconds,
        whichever comes first.

        Some pages never fire a usable load event (SPAs, redirect chains), so
        the fallback timer guarantees progress. Load events that arrive before
        Chrome acknowledges the navigation belong to the previous document and
        are ignored; one that arrives after resolution is dropped.

        Returns:
            "load" or "fallback", depending on which branch won.
        """
        loop = asyncio.get_running_loop()
        done = loop.create_future()
        armed = False
        timer = None

        def resolve(how):
            if not done.done():
                done.set_result(how)

        def on_load(params):
            if armed:
                resolve("load")

        self.session.on("Page.loadEventFired", on_load)
        try:
            await self.session.send("Page", "enable")
            result = await self.session.send("Page", "navigate", {"url": url})
            if result.get("errorText"):
                raise ProtocolError(f"Navigation to {url} failed: {result['errorText']}")

            armed = True
            timer = loop.call_later(self.settings.navigate_fallback, resolve, "fallback")
            how = await done
        finally:
            if timer:
                timer.cancel()
            self.session.off("Page.loadEventFired", on_load)

        logger.debug(f"Navigation to {url} resolved by {how}")
        return how

    async def get_url(self) -> Optional[str]:
        return await self.evaluate("window.location.href")

    async def get_title(self) -> Optional[str]:
        return await self.evaluate("document.title")

    # =========================================================================
    # WAITS
    # =========================================================================

    async def wait_for_timeout(self, seconds: float):
        await asyncio.sleep(seconds)

    async def wait_for_selector(self, selector: str, timeout: Optional[float] = None,
                                visible: bool = False):
        """
        Poll until an element matches the selector (and is rendered, when
        visible=True).

        Document root selectors always match, so they only cost a settle
        delay. A lookup that fails on the protocol side (e.g. execution
        context destroyed by a navigation) counts as "not yet".

        Raises:
            WaitTimeoutError: no match after `timeout` seconds.
        """
        if selector.strip().lower() in ROOT_SELECTORS:
            await asyncio.sleep(self.settings.root_settle)
            return

        timeout = self.settings.selector_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            try:
                state = await self._call(_LOOKUP_JS, selector) or {}
            except ProtocolError as e:
                logger.debug(f"Probe for {selector} failed: {e}")
                state = {}

            if state.get("found") and (not visible or state.get("visible")):
                return

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise WaitTimeoutError(f"Timeout waiting for selector: {selector}")
            await asyncio.sleep(min(self.settings.poll_interval, remaining))

    async def wait_for_network_idle(self, timeout: float = 5.0, max_wait: Optional[float] = None):
        """
        Wait until no request has been in flight for `timeout` seconds.

        Requests are matched by requestId between Network.requestWillBeSent
        and Network.loadingFinished / Network.loadingFailed. With no traffic
        at all this resolves after `timeout`, whatever `max_wait` is.

        `max_wait` only bounds busy time: a request still in flight when it
        expires, or one starting after it, raises WaitTimeoutError. A quiet
        idle window already running is always allowed to finish.
        """
        max_wait = self.settings.network_idle_max_wait if max_wait is None else max_wait
        loop = asyncio.get_running_loop()
        idle = loop.create_future()
        in_flight = set()
        timer = None
        expired = False

        def resolve():
            if not idle.done():
                idle.set_result(None)

        def give_up(message):
            if not idle.done():
                idle.set_exception(WaitTimeoutError(message))

        def arm():
            nonlocal timer
            if timer:
                timer.cancel()
            timer = loop.call_later(timeout, resolve)

        def on_deadline():
            nonlocal expired
            expired = True
            if in_flight:
                give_up(f"Network still busy after {max_wait}s ({len(in_flight)} requests in flight)")

        def on_request(params):
            nonlocal timer
            in_flight.add(params.get("requestId"))
            if timer:
                timer.cancel()
                timer = None
            if expired:
                give_up(f"Network activity resumed after {max_wait}s")

        def on_finished(params):
            request_id = params.get("requestId")
            if request_id not in in_flight:
                return
            in_flight.discard(request_id)
            if not in_flight:
                arm()

        self.session.on("Network.requestWillBeSent", on_request)
        self.session.on("Network.loadingFinished", on_finished)
        self.session.on("Network.loadingFailed", on_finished)
        deadline = loop.call_later(max_wait, on_deadline)
        try:
            await self.session.send("Network", "enable")
            if timer is None and not in_flight:
                arm()
            await idle
        finally:
            deadline.cancel()
            if timer:
                timer.cancel()
            self.session.off("Network.requestWillBeSent", on_request)
            self.session.off("Network.loadingFinished", on_finished)
            self.session.off("Network.loadingFailed", on_finished)

    # =========================================================================
    # INPUT
    # =========================================================================

    async def click(self, selector: str, timeout: Optional[float] = None, wait_after: float = 0):
        """
        Click the centre of the first visible match with a real mouse
        press/release pair (not element.click()).

        Raises:
            WaitTimeoutError: no visible match in time.
            ElementNotFoundError: element vanished between match and click.
        """
        await self.wait_for_selector(selector, timeout=timeout, visible=True)

        box = await self._call(_CENTER_JS, selector)
        if not box:
            raise ElementNotFoundError(f"Element not found: {selector}")

        x, y = round(box["x"]), round(box["y"])
        for event_type in ("mousePressed", "mouseReleased"):
            await self.session.send("Input", "dispatchMouseEvent", {
                "type": event_type, "x": x, "y": y,
                "button": "left", "clickCount": 1
            })

        if wait_after:
            await asyncio.sleep(wait_after)

    async def fill(self, selector: str, text: str):
        """Focus the field, select its content, then type text one character at a time."""
        await self.wait_for_selector(selector, visible=True)
        await self.click(selector)
        await asyncio.sleep(self.settings.focus_delay)

        for params in _SELECT_ALL:
            await self.session.send("Input", "dispatchKeyEvent", params)

        for char in text:
            await self.session.send("Input", "dispatchKeyEvent", {"type": "char", "text": char})

    async def scroll_to(self, selector: str, timeout: Optional[float] = None):
        await self.wait_for_selector(selector, timeout=timeout)
        await self._call(_SCROLL_JS, selector)
        await asyncio.sleep(self.settings.scroll_settle)

    # =========================================================================
    # EXTRACTION
    # =========================================================================

    async def text_content(self, selector: str) -> Optional[str]:
        """Trimmed text of the first match, None when nothing matches, it is empty or the selector is invalid."""
        try:
            return await self._call(_TEXT_JS, selector) or None
        except ProtocolError as e:
            logger.debug(f"text_content({selector}) failed: {e}")
            return None

    async def text_contents(self, selector: str) -> List[str]:
        """Trimmed, non-empty texts of every match, [] when nothing matches."""
        try:
            return await self._call(_TEXTS_JS, selector) or []
        except ProtocolError as e:
            logger.debug(f"text_contents({selector}) failed: {e}")
            return []

    async def get_attribute(self, selector: str, name: str) -> Optional[str]:
        try:
            return await self._call(_ATTRIBUTE_JS, selector, name)
        except ProtocolError as e:
            logger.debug(f"get_attribute({selector}, {name}) failed: {e}")
            return None

    async def get_text(self, limit: Optional[int] = None, selector: Optional[str] = None) -> str:
        """innerText of `selector` (falls back to body), cut to `limit` characters."""
        return await self._call(_INNER_TEXT_JS, selector, limit) or ""
