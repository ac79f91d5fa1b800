"""
Result types: per-source data, failures, and the aggregated Report.

Every site field is optional: an extractor fills what it can find. A
failure result is only produced when nothing usable came out of a source.
"""

import re
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Annotated, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

IP_PATTERN = re.compile(
    r"(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
    r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)"
)


def is_valid_ip(value) -> bool:
    """Strict dotted-quad IPv4 check, each octet 0-255."""
    return isinstance(value, str) and IP_PATTERN.fullmatch(value) is not None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# === Source data ===

class Reputation(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int
    max_score: int


class Detection(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: Optional[str] = None
    engines: Tuple[str, ...] = ()


class SourceData(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    ip: str
    url: Optional[str] = None
    raw_content: Optional[str] = None

    @property
    def ok(self) -> bool:
        return True


class VirusTotalData(SourceData):
    kind: Literal["virustotal"] = "virustotal"
    source: Literal["VirusTotal"] = "VirusTotal"
    detection: Detection = Field(default_factory=Detection)
    reputation: Optional[Reputation] = None
    last_analysis: Optional[str] = None
    country: Optional[str] = None
    asn: Optional[str] = None
    network: Optional[str] = None


class IPInfoData(SourceData):
    kind: Literal["ipinfo"] = "ipinfo"
    source: Literal["IPInfo"] = "IPInfo"
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    postal: Optional[str] = None
    timezone: Optional[str] = None
    org: Optional[str] = None
    asn: Optional[str] = None
    location: Optional[str] = None


class AbuseIPDBData(SourceData):
    kind: Literal["abuseipdb"] = "abuseipdb"
    source: Literal["AbuseIPDB"] = "AbuseIPDB"
    abuse_confidence: Optional[int] = None
    is_public: Optional[bool] = None
    is_whitelisted: Optional[bool] = None
    usage_type: Optional[str] = None
    isp: Optional[str] = None
    domain: Optional[str] = None
    country: Optional[str] = None
    reports: Tuple[str, ...] = ()
    last_reported: Optional[str] = None


class ExtractionFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["failure"] = "failure"
    status: Literal["failure"] = "failure"
    source: str
    ip: str
    message: str

    @property
    def ok(self) -> bool:
        return False


ExtractionResult = Annotated[
    Union[VirusTotalData, IPInfoData, AbuseIPDBData, ExtractionFailure],
    Field(discriminator="kind"),
]


# === Aggregate ===

class SoftError(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    message: str


class Report(BaseModel):
    """All sources' results for one IP. Frozen once built."""
    model_config = ConfigDict(frozen=True)

    ip: str
    timestamp: datetime = Field(default_factory=utcnow)
    sources: Dict[str, ExtractionResult]
    errors: Tuple[SoftError, ...] = ()

    @field_validator("sources", mode="after")
    @classmethod
    def read_only_sources(cls, sources: Dict[str, ExtractionResult]) -> Mapping[str, ExtractionResult]:
        # frozen=True does not reach into the mapping itself
        return MappingProxyType(dict(sources))

    @field_serializer("sources")
    def dump_sources(self, sources: Mapping[str, ExtractionResult]) -> Dict[str, ExtractionResult]:
        return dict(sources)

    def succeeded(self) -> List[str]:
        return [key for key, result in self.sources.items() if result.ok]

    def failed(self) -> List[str]:
        return [key for key, result in self.sources.items() if not result.ok]


# === Invocation ===

class MessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    subject_identifier: Optional[str] = Field(default=None, alias="subjectIdentifier")


class MessageResponse(BaseModel):
    success: bool
    data: Optional[Report] = None
    error: Optional[str] = None
