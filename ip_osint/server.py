"""
OSINT Collector API
FastAPI server exposing IP collection and stored reports

    python3 -m ip_osint serve
    python3 -m uvicorn ip_osint.server:app --host 127.0.0.1 --port 8000
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings
from .connection import BrowserConnection
from .errors import CDPError, InvalidRequestError
from .models import is_valid_ip
from .orchestrator import Orchestrator
from .service import handle_request, parse_request
from .storage import ReportStore

logger = logging.getLogger(__name__)

settings = Settings.from_env()

# Set by lifespan; tests assign them directly
browser: Optional[BrowserConnection] = None
report_store: Optional[ReportStore] = None
orchestrator: Optional[Orchestrator] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    global browser, report_store, orchestrator

    report_store = ReportStore(settings.redis_url, settings.key_prefix)
    if await report_store.ping():
        logger.info(f"Connected to Redis at {settings.redis_url}")
    else:
        logger.warning("Redis connection failed, reports will not be stored")

    browser = BrowserConnection(settings)
    try:
        await browser.connect()
        orchestrator = Orchestrator(browser, settings, store=report_store)
    except CDPError as e:
        logger.warning(f"Chrome not reachable on {settings.http_url}: {e}")

    yield

    orchestrator = None
    if browser:
        await browser.close()
    if report_store:
        await report_store.close()


app = FastAPI(
    title="OSINT Collector API",
    version=__version__,
    lifespan=lifespan
)

# CORS for local dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _check_ip(ip: str):
    if not is_valid_ip(ip):
        raise HTTPException(status_code=400, detail="Invalid IP address format")


# === Routes ===

@app.get("/api/health")
async def health():
    redis_ok = bool(report_store) and await report_store.ping()
    browser_ok = bool(browser) and browser.connected
    return {
        "status": "ok" if redis_ok and browser_ok else "degraded",
        "redis": redis_ok,
        "browser": browser_ok,
        "timestamp": int(time.time()),
    }


@app.post("/api/request")
async def request(payload: dict):
    """Message entry point: {"action": "collect" | "getStored", "subjectIdentifier": ip}"""
    try:
        parse_request(payload)
    except InvalidRequestError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
    return await handle_request(payload, orchestrator, report_store)


@app.post("/api/collect/{ip}")
async def collect(ip: str):
    _check_ip(ip)
    if not orchestrator:
        raise HTTPException(status_code=503, detail="Browser not connected")
    report = await orchestrator.run(ip)
    return report.model_dump(mode="json")


@app.get("/api/reports/{ip}")
async def get_report(ip: str):
    _check_ip(ip)
    if not report_store:
        raise HTTPException(status_code=503, detail="Redis not available")

    try:
        report = await report_store.load(ip)
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Redis error: {e}")

    if report is None:
        raise HTTPException(status_code=404, detail=f"No report for {ip}")
    return report.model_dump(mode="json")
