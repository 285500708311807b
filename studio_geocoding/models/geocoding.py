from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from studio_geocoding.geocoding.exceptions import (
    AddressNotResolvedError,
    ProviderError,
    RateLimitedError,
    TransportError,
)


class FailureCode(str, Enum):
    NO_RESULTS = "no_results"
    RATE_LIMITED = "rate_limited"
    DENIED = "denied"
    INVALID_REQUEST = "invalid_request"
    PROVIDER_ERROR = "provider_error"
    TRANSPORT_ERROR = "transport_error"


# Failures worth retrying later; these never enter either cache tier
TRANSIENT_CODES = {FailureCode.RATE_LIMITED, FailureCode.TRANSPORT_ERROR}


class Success(BaseModel):
    kind: Literal["success"] = "success"
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    formatted_address: Optional[str] = None
    source: Literal["api", "memory", "database"] = "api"

    @property
    def ok(self):
        return True


class Failure(BaseModel):
    kind: Literal["failure"] = "failure"
    reason: str
    code: FailureCode = FailureCode.PROVIDER_ERROR

    @property
    def ok(self):
        return False

    @property
    def transient(self):
        return self.code in TRANSIENT_CODES

    def to_exception(self):
        """Turn this failure into the matching exception for callers that raise."""
        if self.code == FailureCode.RATE_LIMITED:
            return RateLimitedError(self.reason)
        if self.code == FailureCode.TRANSPORT_ERROR:
            return TransportError(self.reason)
        if self.code == FailureCode.PROVIDER_ERROR:
            return ProviderError(self.reason)
        return AddressNotResolvedError(self.reason, code=self.code.value)


ResolutionResult = Union[Success, Failure]


class BatchSummary(BaseModel):
    """Running counts for everything the drain loop has handled."""
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    rate_limited: int = 0
    last_error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class QueueStatus(BaseModel):
    state: Literal["idle", "draining"]
    pending_count: int
    pending_ids: List[str] = []
    summary: BatchSummary


class GeocodingStatus(BaseModel):
    total: int
    with_coordinates: int
    without_coordinates: int
    placeholder: int
    percentage: int


class CacheStats(BaseModel):
    memory_hits: int
    memory_misses: int
    failure_hits: int
    memory_size: int
    failure_size: int
    database_hits: int
    database_entries: int
