"""VirusTotal: reputation, detections and network info for an IP."""

import logging
import re
from typing import Optional

from ..models import Detection, Reputation, VirusTotalData
from ..page import PageAutomation
from .base import ExtractionTask

logger = logging.getLogger(__name__)

REPUTATION_RE = re.compile(r"(\d+)\s*/\s*(\d+)")


def parse_reputation(text: Optional[str]) -> Optional[Reputation]:
    """'3 / 94' -> Reputation(score=3, max_score=94)"""
    match = REPUTATION_RE.search(text or "")
    if not match:
        return None
    return Reputation(score=int(match.group(1)), max_score=int(match.group(2)))


class VirusTotalTask(ExtractionTask):
    key = "virustotal"
    name = "VirusTotal"

    initial_wait = 4.0
    scroll_wait = 2.0
    scroll_timeout = 5.0

    def url_for(self, ip: str) -> str:
        return f"https://www.virustotal.com/gui/ip-address/{ip}"

    async def extract(self, page: PageAutomation, ip: str) -> VirusTotalData:
        url = self.url_for(ip)
        logger.info(f"[{self.name}] Navigating to: {url}")
        await page.navigate(url)
        await page.wait_for_timeout(self.initial_wait)

        # The report element is rendered late, and not at all for unknown IPs
        await self.field("report", page.scroll_to("vt-ui-main-generic-report", timeout=self.scroll_timeout))
        await page.wait_for_timeout(self.scroll_wait)

        page_text = await self.field("page text", page.get_text(5000)) or ""
        logger.debug(f"[{self.name}] Page text sample: {page_text[:200]!r}")

        reputation = await self.field("reputation", page.text_content("vt-ui-reputation-widget"))
        detections = await self.field("detection", page.text_contents("vt-ui-detections-widget, vt-ui-generic-card"))
        cards = await self.field("network", page.text_contents('vt-ui-generic-card, [class*="network"]'))

        return VirusTotalData(
            ip=ip,
            url=url,
            reputation=parse_reputation(reputation),
            detection=Detection(summary=" ".join(detections)) if detections else Detection(),
            last_analysis=await self.field(
                "last analysis", page.text_content('[class*="last-analysis"], [class*="analysis"]')),
            country=await self.field(
                "country", page.text_content('[class*="country"], [title*="Country"]')),
            asn=await self.field(
                "asn", page.text_content('[class*="asn"], [title*="ASN"]')),
            network=" | ".join(cards[:3]) if cards else None,
            raw_content=page_text or None,
        )
