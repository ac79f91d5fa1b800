"""
storage.py - Redis persistence for Reports

One string key per IP, {prefix}:report:{ip}, holding the Report as JSON.
A newer collection for the same IP overwrites the previous one.
"""

import logging
from typing import Optional, Union

import redis.asyncio as redis

from .models import Report

logger = logging.getLogger(__name__)


class ReportStore:
    def __init__(self, client: Union[str, redis.Redis] = "redis://127.0.0.1:6379", prefix: str = "osint"):
        if isinstance(client, str):
            client = redis.from_url(client, decode_responses=True)
        self.redis = client
        self.prefix = prefix

    def key_for(self, ip: str) -> str:
        return f"{self.prefix}:report:{ip}"

    async def store(self, key: str, report: Report):
        await self.redis.set(self.key_for(key), report.model_dump_json())
        logger.debug(f"Stored report for {key}")

    async def load(self, key: str) -> Optional[Report]:
        raw = await self.redis.get(self.key_for(key))
        if raw is None:
            return None
        return Report.model_validate_json(raw)

    async def ping(self) -> bool:
        try:
            await self.redis.ping()
            return True
        except Exception as e:
            logger.warning(f"Redis unavailable: {e}")
            return False

    async def close(self):
        await self.redis.close()
