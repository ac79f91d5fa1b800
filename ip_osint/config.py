"""
config.py - Runtime settings for the OSINT collector

Every value can be overridden from the environment, same convention as the
rest of the tooling (REDIS_URL, CDP_PORT, ...). Durations are in seconds.
"""

import os
import logging
from dataclasses import dataclass

LOG_FORMAT = '%(asctime)s [OSINT] %(levelname)s: %(message)s'

# Selectors that always match once a document exists. Waiting on them is a
# plain settle delay, no polling.
ROOT_SELECTORS = frozenset({"html", ":root", "body"})


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


@dataclass
class Settings:
    # Chrome, started manually with --remote-debugging-port
    cdp_host: str = "127.0.0.1"
    cdp_port: int = 9222

    # Redis persistence
    redis_url: str = "redis://127.0.0.1:6379"
    key_prefix: str = "osint"

    # Protocol
    command_timeout: float = 30.0

    # Page automation
    navigate_fallback: float = 5.0
    poll_interval: float = 0.5
    selector_timeout: float = 30.0
    root_settle: float = 0.5
    scroll_settle: float = 0.5
    focus_delay: float = 0.1
    network_idle_max_wait: float = 30.0

    # Target lifecycle
    load_settle: float = 2.0
    load_timeout: float = 30.0

    # HTTP API
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    log_level: str = "INFO"

    @property
    def http_url(self) -> str:
        return f"http://{self.cdp_host}:{self.cdp_port}"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            cdp_host=os.environ.get("CDP_HOST", "127.0.0.1"),
            cdp_port=int(os.environ.get("CDP_PORT", 9222)),
            redis_url=os.environ.get("REDIS_URL", "redis://127.0.0.1:6379"),
            key_prefix=os.environ.get("OSINT_PREFIX", "osint"),
            command_timeout=_env_float("COMMAND_TIMEOUT", 30.0),
            navigate_fallback=_env_float("NAVIGATE_FALLBACK", 5.0),
            poll_interval=_env_float("POLL_INTERVAL", 0.5),
            selector_timeout=_env_float("SELECTOR_TIMEOUT", 30.0),
            root_settle=_env_float("ROOT_SETTLE", 0.5),
            scroll_settle=_env_float("SCROLL_SETTLE", 0.5),
            network_idle_max_wait=_env_float("NETWORK_IDLE_MAX_WAIT", 30.0),
            load_settle=_env_float("LOAD_SETTLE", 2.0),
            load_timeout=_env_float("LOAD_TIMEOUT", 30.0),
            api_host=os.environ.get("API_HOST", "127.0.0.1"),
            api_port=int(os.environ.get("API_PORT", 8000)),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


def configure_logging(level: str = "INFO"):
    """Root logging setup, called once by the entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )
