# IP OSINT Collector
# Scrapes VirusTotal, IPInfo and AbuseIPDB through Chrome DevTools Protocol

__version__ = '1.0.0'

from .config import Settings
from .connection import BrowserConnection
from .errors import (
    CDPError, SessionConnectionError, NotAttachedError, ProtocolError, WaitTimeoutError,
    ElementNotFoundError, TargetCreationError, InvalidRequestError,
)
from .models import Report, SoftError, ExtractionFailure
from .orchestrator import Orchestrator
from .page import PageAutomation
from .service import handle_request
from .session import ProtocolSession
from .storage import ReportStore
from .targets import Target, TargetLifecycle

__all__ = [
    'Settings', 'BrowserConnection', 'ProtocolSession', 'PageAutomation', 'Target', 'TargetLifecycle',
    'Orchestrator', 'ReportStore', 'handle_request', 'Report', 'SoftError', 'ExtractionFailure',
    'CDPError', 'SessionConnectionError', 'NotAttachedError', 'ProtocolError', 'WaitTimeoutError',
    'ElementNotFoundError', 'TargetCreationError', 'InvalidRequestError',
]
