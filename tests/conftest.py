"""
Pytest fixtures for ip_osint tests

Nothing here needs Chrome: FakeConnection answers CDP commands from a
per-method script and lets tests push events by hand.
"""
import asyncio

import pytest

from ip_osint.config import Settings
from ip_osint.errors import TargetCreationError, WaitTimeoutError
from ip_osint.targets import Target


class FakeConnection:
    """
    Stand-in for BrowserConnection.

    conn.reply("Page.navigate", {"frameId": "F"})            # fixed result
    conn.reply("Runtime.evaluate", lambda params, sid: ...)  # computed result
    conn.reply("Target.closeTarget", ProtocolError("gone"))  # raised
    """

    def __init__(self, settings=None):
        self.settings = settings or Settings()
        self.calls = []
        self.replies = {}
        self._receivers = []
        self.connected = True

    def reply(self, method, result):
        self.replies[method] = result

    async def call(self, method, params=None, session_id=None, timeout=None):
        params = params or {}
        self.calls.append((method, params, session_id))
        created = len(self.sent("Target.createTarget"))
        await asyncio.sleep(0)

        scripted = self.replies.get(method)
        if isinstance(scripted, Exception):
            raise scripted
        if callable(scripted):
            return scripted(params, session_id) or {}
        if scripted is not None:
            return scripted

        if method == "Target.attachToTarget":
            return {"sessionId": f"S-{params['targetId']}"}
        if method == "Target.createTarget":
            return {"targetId": f"T{created}"}
        return {}

    def sent(self, method):
        """Params of every call to `method`, in order."""
        return [params for name, params, _ in self.calls if name == method]

    def subscribe(self, receiver):
        self._receivers.append(receiver)

    def unsubscribe(self, receiver):
        if receiver in self._receivers:
            self._receivers.remove(receiver)

    def emit(self, session_id, method, params=None):
        for receiver in list(self._receivers):
            receiver(session_id, method, params or {})

    def emit_later(self, delay, session_id, method, params=None):
        asyncio.get_running_loop().call_later(delay, self.emit, session_id, method, params)


class FakeLifecycle:
    """TargetLifecycle double that records creates and destroys."""

    def __init__(self, fail_create=(), fail_load=()):
        self.fail_create = fail_create
        self.fail_load = fail_load
        self.created = []
        self.destroyed = []

    async def create(self, url, foreground=False):
        if any(part in url for part in self.fail_create):
            raise TargetCreationError(f"refused: {url}")
        target = Target(target_id=f"T{len(self.created)}", url=url)
        self.created.append(target)
        return target

    async def await_loaded(self, target, settle=None, timeout=None):
        if any(part in target.url for part in self.fail_load):
            raise WaitTimeoutError(f"never loaded: {target.url}")

    async def destroy(self, target):
        self.destroyed.append(target.target_id)


class FakeRedis:
    """The few redis.asyncio calls ReportStore makes, backed by a dict."""

    def __init__(self, fail=False):
        self.data = {}
        self.fail = fail
        self.closed = False

    async def set(self, key, value):
        if self.fail:
            raise ConnectionError("Redis down")
        self.data[key] = value

    async def get(self, key):
        if self.fail:
            raise ConnectionError("Redis down")
        return self.data.get(key)

    async def ping(self):
        if self.fail:
            raise ConnectionError("Redis down")
        return True

    async def close(self):
        self.closed = True


@pytest.fixture
def run():
    """Drive a coroutine to completion on a fresh event loop"""
    return asyncio.run


@pytest.fixture
def settings():
    """Settings with every delay shrunk so tests run in milliseconds"""
    return Settings(
        command_timeout=1.0,
        navigate_fallback=0.2,
        poll_interval=0.02,
        selector_timeout=0.3,
        root_settle=0.01,
        scroll_settle=0,
        focus_delay=0,
        network_idle_max_wait=2.0,
        load_settle=0,
        load_timeout=0.3,
    )


@pytest.fixture
def conn(settings):
    return FakeConnection(settings)


@pytest.fixture
def lifecycle():
    return FakeLifecycle()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def redis_url():
    """URL of a live Redis for round-trip tests, skipped when none is running"""
    url = "redis://127.0.0.1:6379"
    try:
        import redis
        client = redis.Redis.from_url(url, decode_responses=True)
        client.ping()
        yield url
        # Cleanup test keys
        for key in client.keys('osint-test:*'):
            client.delete(key)
        client.close()
    except Exception as e:
        pytest.skip(f"Redis not available: {e}")
