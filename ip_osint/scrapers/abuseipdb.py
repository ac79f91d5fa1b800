"""AbuseIPDB: abuse confidence score and recent reports for an IP."""

import logging
import re
from typing import Iterable, Optional, Tuple

from ..models import AbuseIPDBData
from ..page import PageAutomation
from .base import ExtractionTask

logger = logging.getLogger(__name__)

CONFIDENCE_RE = re.compile(r"(\d+)%")
MAX_REPORTS = 10


def parse_confidence(text: Optional[str]) -> Optional[int]:
    """'Confidence of Abuse is 100%' -> 100"""
    match = CONFIDENCE_RE.search(text or "")
    return int(match.group(1)) if match else None


def parse_status_flags(texts: Iterable[str]) -> Tuple[Optional[bool], Optional[bool]]:
    """(is_public, is_whitelisted); None where the page says nothing."""
    is_public = None
    is_whitelisted = None
    for text in texts:
        lower = text.lower()
        if "public" in lower:
            is_public = True
        if "whitelist" in lower:
            is_whitelisted = True
    return is_public, is_whitelisted


class AbuseIPDBTask(ExtractionTask):
    key = "abuseipdb"
    name = "AbuseIPDB"

    initial_wait = 3.0

    def url_for(self, ip: str) -> str:
        return f"https://www.abuseipdb.com/check/{ip}"

    async def extract(self, page: PageAutomation, ip: str) -> AbuseIPDBData:
        url = self.url_for(ip)
        logger.info(f"[{self.name}] Navigating to: {url}")
        await page.navigate(url)
        await page.wait_for_timeout(self.initial_wait)

        fields = {}

        confidence = await self.field(
            "confidence", page.text_content('[class*="confidence"], [class*="score"], [id*="confidence"]'))
        fields["abuse_confidence"] = parse_confidence(confidence)

        statuses = await self.field(
            "status", page.text_contents('[class*="status"], [class*="public"], [class*="whitelist"]'))
        fields["is_public"], fields["is_whitelisted"] = parse_status_flags(statuses or [])

        for name, selector in (
            ("usage_type", '[class*="usage"], [class*="type"]'),
            ("isp", '[class*="isp"], [title*="ISP"]'),
            ("domain", '[class*="domain"]'),
            ("country", '[class*="country"], [title*="Country"]'),
            ("last_reported", '[class*="last"], [class*="reported"]'),
        ):
            fields[name] = await self.field(name, page.text_content(selector))

        reports = await self.field("reports", page.text_contents('[class*="report"], [class*="abuse"], table tr'))
        fields["reports"] = tuple((reports or [])[:MAX_REPORTS])

        fields["raw_content"] = await self.field(
            "raw content", page.get_text(2000, selector='main, [class*="content"], [id*="content"]')) or None
        return AbuseIPDBData(ip=ip, url=url, **fields)
