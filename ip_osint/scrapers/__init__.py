# Per-site extraction tasks.
# The orchestrator runs exactly this list; there is no runtime registry.

from typing import Optional, Tuple

from ..config import Settings
from .base import ExtractionTask
from .abuseipdb import AbuseIPDBTask
from .ipinfo import IPInfoTask
from .virustotal import VirusTotalTask

SOURCES = (VirusTotalTask, IPInfoTask, AbuseIPDBTask)
SOURCE_KEYS = tuple(cls.key for cls in SOURCES)


def default_tasks(settings: Optional[Settings] = None) -> Tuple[ExtractionTask, ...]:
    return tuple(cls(settings) for cls in SOURCES)


__all__ = [
    'ExtractionTask', 'VirusTotalTask', 'IPInfoTask', 'AbuseIPDBTask',
    'SOURCES', 'SOURCE_KEYS', 'default_tasks',
]
