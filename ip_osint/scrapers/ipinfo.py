"""IPInfo: geolocation and network owner for an IP."""

import logging
import re
from typing import Dict, Iterable

from ..models import IPInfoData
from ..page import PageAutomation
from .base import ExtractionTask

logger = logging.getLogger(__name__)

# (field, keywords that flag a line, label prefix stripped from it)
LINE_FIELDS = (
    ("country", ("country",), re.compile(r"country:", re.I)),
    ("region", ("region", "state"), re.compile(r"region:|state:", re.I)),
    ("city", ("city",), re.compile(r"city:", re.I)),
    ("postal", ("postal", "zip"), re.compile(r"postal:|zip:", re.I)),
    ("timezone", ("timezone",), re.compile(r"timezone:", re.I)),
    ("org", ("org", "organization"), re.compile(r"org:|organization:", re.I)),
    ("asn", ("asn",), re.compile(r"asn:", re.I)),
)
COUNTRY_CODE_RE = re.compile(r"[A-Z]{2}")
ASN_RE = re.compile(r"AS\d+", re.I)


def parse_ipinfo_lines(lines: Iterable[str]) -> Dict[str, str]:
    """
    Pick labelled values out of the page's text lines.

    IPInfo renders "Label: value" rows; a later matching line overrides an
    earlier one. Bare two-letter lines are taken as the country code and
    lines starting with AS<number> as the ASN.
    """
    found = {}
    for line in lines:
        line = line.strip()
        if not line:
            continue
        lower = line.lower()
        for name, keywords, label in LINE_FIELDS:
            matched = any(k in lower for k in keywords)
            if name == "country" and COUNTRY_CODE_RE.fullmatch(line):
                matched = True
            if name == "asn" and ASN_RE.match(line):
                matched = True
            if matched:
                found[name] = label.sub("", line).strip()
    return found


class IPInfoTask(ExtractionTask):
    key = "ipinfo"
    name = "IPInfo"

    initial_wait = 3.0
    body_timeout = 10.0

    def url_for(self, ip: str) -> str:
        return f"https://ipinfo.io/{ip}"

    async def extract(self, page: PageAutomation, ip: str) -> IPInfoData:
        url = self.url_for(ip)
        logger.info(f"[{self.name}] Navigating to: {url}")
        await page.navigate(url)
        await page.wait_for_timeout(self.initial_wait)
        await page.wait_for_selector("body", timeout=self.body_timeout)

        fields = {}

        body = await self.field("structured data", page.get_text())
        if body:
            fields.update(parse_ipinfo_lines(body.split("\n")))

        # Dedicated elements win over the line parsing
        for name, selector in (
            ("country", '[data-testid="country"], .country, [class*="country"]'),
            ("city", '[data-testid="city"], .city, [class*="city"]'),
            ("org", '[data-testid="org"], .org, [class*="org"]'),
        ):
            value = await self.field(name, page.text_content(selector))
            if value:
                fields[name] = value

        locations = await self.field(
            "location",
            page.text_contents('[class*="location"], [class*="coordinates"], [class*="lat"], [class*="lng"]'))
        if locations:
            fields["location"] = ", ".join(locations)

        raw_content = await self.field("raw content", page.get_text(2000)) or None
        return IPInfoData(ip=ip, url=url, raw_content=raw_content, **fields)
