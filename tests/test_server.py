"""
Tests for the HTTP API (ip_osint/server.py)
"""
import pytest
from fastapi.testclient import TestClient

from ip_osint import server
from ip_osint.models import VirusTotalData
from ip_osint.orchestrator import Orchestrator
from ip_osint.scrapers import VirusTotalTask
from ip_osint.storage import ReportStore

from conftest import FakeRedis


class StubVirusTotal(VirusTotalTask):
    async def extract(self, page, ip):
        return VirusTotalData(ip=ip, asn="AS13335")


class ConnectedBrowser:
    connected = True


@pytest.fixture
def client(monkeypatch, conn, settings, lifecycle, fake_redis):
    """API client with the browser and Redis replaced by fakes (lifespan not run)"""
    store = ReportStore(fake_redis)
    monkeypatch.setattr(server, "report_store", store)
    monkeypatch.setattr(server, "browser", ConnectedBrowser())
    monkeypatch.setattr(server, "orchestrator", Orchestrator(
        conn, settings, tasks=[StubVirusTotal(settings)], store=store, lifecycle=lifecycle))
    return TestClient(server.app)


class TestHealth:

    def test_ok(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["redis"] is True
        assert body["browser"] is True

    def test_degraded(self, client, monkeypatch):
        monkeypatch.setattr(server, "report_store", ReportStore(FakeRedis(fail=True)))
        body = client.get("/api/health").json()
        assert body["status"] == "degraded"
        assert body["redis"] is False


class TestRequest:

    def test_collect(self, client):
        response = client.post("/api/request", json={"action": "collect", "subjectIdentifier": "1.1.1.1"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["sources"]["virustotal"]["asn"] == "AS13335"

    def test_invalid_ip(self, client, lifecycle):
        response = client.post("/api/request", json={"action": "collect", "subjectIdentifier": "1.1.1"})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid IP address format"}
        assert lifecycle.created == []

    def test_get_stored(self, client):
        client.post("/api/collect/1.1.1.1")
        body = client.post("/api/request", json={"action": "getStored", "subjectIdentifier": "1.1.1.1"}).json()
        assert body["success"] is True
        assert body["data"]["ip"] == "1.1.1.1"


class TestConvenienceRoutes:

    def test_collect_and_fetch(self, client):
        collected = client.post("/api/collect/8.8.4.4")
        assert collected.status_code == 200

        fetched = client.get("/api/reports/8.8.4.4")
        assert fetched.status_code == 200
        assert fetched.json() == collected.json()

    def test_report_not_found(self, client):
        assert client.get("/api/reports/10.9.8.7").status_code == 404

    def test_invalid_ip(self, client):
        assert client.post("/api/collect/300.1.1.1").status_code == 400
        assert client.get("/api/reports/not-an-ip").status_code == 400

    def test_browser_unavailable(self, client, monkeypatch):
        monkeypatch.setattr(server, "orchestrator", None)
        assert client.post("/api/collect/8.8.8.8").status_code == 503

    def test_redis_unavailable(self, client, monkeypatch):
        monkeypatch.setattr(server, "report_store", ReportStore(FakeRedis(fail=True)))
        assert client.get("/api/reports/8.8.8.8").status_code == 503
