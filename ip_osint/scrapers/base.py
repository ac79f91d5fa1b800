"""
base.py - Shared shape of a per-site extraction task

A task owns its session from attach to detach and never lets an exception
out: anything that stops the whole scrape becomes an ExtractionFailure.
Individual fields go through field(), so one missing element only leaves
that field empty.
"""

import logging
from typing import Awaitable, Optional, TypeVar

from ..config import Settings
from ..connection import BrowserConnection
from ..errors import NotAttachedError, SessionConnectionError
from ..models import ExtractionFailure, ExtractionResult
from ..page import PageAutomation
from ..session import ProtocolSession
from ..targets import Target

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExtractionTask:
    """One OSINT source. Subclasses set key/name and implement url_for() and extract()."""

    key = ""
    name = ""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def url_for(self, ip: str) -> str:
        raise NotImplementedError

    async def extract(self, page: PageAutomation, ip: str) -> ExtractionResult:
        raise NotImplementedError

    def failure(self, ip: str, message: str) -> ExtractionFailure:
        return ExtractionFailure(source=self.name, ip=ip, message=message)

    async def run(self, connection: BrowserConnection, target: Target, ip: str) -> ExtractionResult:
        """Attach to `target`, run extract(), detach. Always returns a result."""
        logger.info(f"[{self.name}] Starting scrape for tab {target.short_id}")
        session = ProtocolSession(connection, target.target_id)
        try:
            await session.attach()
            page = PageAutomation(session, self.settings)
            result = await self.extract(page, ip)
            logger.info(f"[{self.name}] Scrape complete")
            return result
        except Exception as e:
            logger.warning(f"[{self.name}] Scraping error: {e}")
            return self.failure(ip, str(e) or type(e).__name__)
        finally:
            try:
                await session.detach()
            except SessionConnectionError as e:
                logger.warning(f"[{self.name}] {e}")

    async def field(self, label: str, pending: Awaitable[T]) -> Optional[T]:
        """
        Await one field extraction, None if it fails.

        A lost connection is not a field problem and is re-raised so the
        whole task fails.
        """
        try:
            return await pending
        except (SessionConnectionError, NotAttachedError):
            raise
        except Exception as e:
            logger.debug(f"[{self.name}] Could not extract {label}: {e}")
            return None
