"""
Tests for the per-site extraction tasks (ip_osint/scrapers/)
"""
import pytest

from ip_osint.errors import ElementNotFoundError, ProtocolError, SessionConnectionError
from ip_osint.models import ExtractionFailure, IPInfoData, Reputation
from ip_osint.scrapers import SOURCE_KEYS, AbuseIPDBTask, IPInfoTask, VirusTotalTask, default_tasks
from ip_osint.scrapers.abuseipdb import parse_confidence, parse_status_flags
from ip_osint.scrapers.ipinfo import parse_ipinfo_lines
from ip_osint.scrapers.virustotal import parse_reputation
from ip_osint.targets import Target


class FakePage:
    """Duck-typed PageAutomation answering from selector -> value tables"""

    def __init__(self, texts=None, lists=None, body="", missing=()):
        self.texts = texts or {}
        self.lists = lists or {}
        self.body = body
        self.missing = missing
        self.visited = []

    async def navigate(self, url):
        self.visited.append(url)
        return "load"

    async def wait_for_timeout(self, seconds):
        pass

    async def wait_for_selector(self, selector, timeout=None, visible=False):
        pass

    async def scroll_to(self, selector, timeout=None):
        if selector in self.missing:
            raise ElementNotFoundError(selector)

    async def text_content(self, selector):
        if selector in self.missing:
            raise ProtocolError("Execution context was destroyed.")
        return self.texts.get(selector)

    async def text_contents(self, selector):
        return self.lists.get(selector, [])

    async def get_text(self, limit=None, selector=None):
        return self.body[:limit] if limit else self.body


class TestParsers:

    def test_reputation(self):
        assert parse_reputation("Community Score 3 / 94") == Reputation(score=3, max_score=94)
        assert parse_reputation("0/0") == Reputation(score=0, max_score=0)
        assert parse_reputation("No score") is None
        assert parse_reputation(None) is None

    def test_confidence(self):
        assert parse_confidence("Confidence of Abuse is 100%") == 100
        assert parse_confidence("0 %") is None
        assert parse_confidence(None) is None

    def test_status_flags(self):
        assert parse_status_flags(["This IP is public", "Whitelisted"]) == (True, True)
        assert parse_status_flags(["Reserved"]) == (None, None)

    def test_ipinfo_lines(self):
        lines = [
            "Summary",
            "ASN: AS15169 - Google LLC",
            "City: Mountain View",
            "Region: California",
            "Postal: 94043",
            "Timezone: America/Los_Angeles",
            "Organization: Google LLC",
            "US",
        ]
        found = parse_ipinfo_lines(lines)
        assert found["city"] == "Mountain View"
        assert found["region"] == "California"
        assert found["postal"] == "94043"
        assert found["timezone"] == "America/Los_Angeles"
        assert found["org"] == "Google LLC"
        assert found["country"] == "US"
        assert found["asn"] == "AS15169 - Google LLC"

    def test_ipinfo_later_line_wins(self):
        found = parse_ipinfo_lines(["City: Paris", "", "city: Lyon"])
        assert found == {"city": "Lyon"}


class TestExtract:
    """extract() against a fake page"""

    def test_virustotal(self, run, settings):
        page = FakePage(
            texts={"vt-ui-reputation-widget": "2 / 94"},
            lists={
                "vt-ui-detections-widget, vt-ui-generic-card": ["2/94 security vendors", "flagged"],
                'vt-ui-generic-card, [class*="network"]': ["8.8.8.0/24", "AS15169", "GOOGLE", "US"],
            },
            body="x" * 6000,
        )

        data = run(VirusTotalTask(settings).extract(page, "8.8.8.8"))

        assert page.visited == ["https://www.virustotal.com/gui/ip-address/8.8.8.8"]
        assert data.reputation == Reputation(score=2, max_score=94)
        assert data.detection.summary == "2/94 security vendors flagged"
        assert data.network == "8.8.8.0/24 | AS15169 | GOOGLE"
        assert len(data.raw_content) == 5000
        assert data.country is None, "Absent fields stay empty"

    def test_virustotal_without_report_element(self, run, settings):
        page = FakePage(missing=("vt-ui-main-generic-report",))
        data = run(VirusTotalTask(settings).extract(page, "10.0.0.1"))
        assert data.ok
        assert data.raw_content is None

    def test_virustotal_page_text_unreadable(self, run, settings):
        """A navigation racing the innerText read only loses raw_content"""
        class Reloading(FakePage):
            async def get_text(self, limit=None, selector=None):
                raise ProtocolError("Execution context was destroyed.")

        page = Reloading(texts={"vt-ui-reputation-widget": "0 / 94"})
        data = run(VirusTotalTask(settings).extract(page, "8.8.4.4"))

        assert data.ok
        assert data.raw_content is None
        assert data.reputation == Reputation(score=0, max_score=94)

    def test_ipinfo_selectors_override_lines(self, run, settings):
        page = FakePage(
            texts={'[data-testid="city"], .city, [class*="city"]': "Mountain View, CA"},
            lists={'[class*="location"], [class*="coordinates"], [class*="lat"], [class*="lng"]': ["37.4056", "-122.0775"]},
            body="City: Somewhere\nCountry: United States\nASN: AS15169",
        )

        data = run(IPInfoTask(settings).extract(page, "8.8.8.8"))

        assert isinstance(data, IPInfoData)
        assert data.city == "Mountain View, CA"
        assert data.country == "United States"
        assert data.asn == "AS15169"
        assert data.location == "37.4056, -122.0775"

    def test_abuseipdb(self, run, settings):
        page = FakePage(
            texts={
                '[class*="confidence"], [class*="score"], [id*="confidence"]': "Confidence of Abuse is 37%",
                '[class*="isp"], [title*="ISP"]': "Example Hosting",
            },
            lists={
                '[class*="status"], [class*="public"], [class*="whitelist"]': ["public"],
                '[class*="report"], [class*="abuse"], table tr': [f"report {i}" for i in range(15)],
            },
            missing=('[class*="domain"]',),
        )

        data = run(AbuseIPDBTask(settings).extract(page, "203.0.113.9"))

        assert data.abuse_confidence == 37
        assert data.is_public is True
        assert data.is_whitelisted is None
        assert data.isp == "Example Hosting"
        assert data.domain is None, "Failed field stays absent"
        assert len(data.reports) == 10


class TestRun:
    """run() owns its session and never raises"""

    def test_failure_downgraded(self, run, conn, settings):
        class Broken(IPInfoTask):
            async def extract(self, page, ip):
                raise ElementNotFoundError("Element not found: body")

        result = run(Broken(settings).run(conn, Target("T1", "https://ipinfo.io/1.2.3.4"), "1.2.3.4"))

        assert isinstance(result, ExtractionFailure)
        assert result.source == "IPInfo"
        assert "Element not found" in result.message
        assert conn.sent("Target.detachFromTarget") == [{"sessionId": "S-T1"}]

    def test_attach_failure_downgraded(self, run, conn, settings):
        conn.reply("Target.attachToTarget", ProtocolError("No target with given id found"))

        result = run(AbuseIPDBTask(settings).run(conn, Target("gone", "about:blank"), "1.2.3.4"))

        assert not result.ok
        assert result.source == "AbuseIPDB"

    def test_field_guard(self, run, settings):
        task = VirusTotalTask(settings)

        async def fails():
            raise ProtocolError("Cannot find context with specified id")

        async def disconnects():
            raise SessionConnectionError("Browser connection closed")

        assert run(task.field("asn", fails())) is None
        with pytest.raises(SessionConnectionError):
            run(task.field("asn", disconnects()))

    def test_default_tasks(self, settings):
        tasks = default_tasks(settings)
        assert tuple(t.key for t in tasks) == SOURCE_KEYS == ("virustotal", "ipinfo", "abuseipdb")
        assert all(t.settings is settings for t in tasks)
