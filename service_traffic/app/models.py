"""
Result models for the traffic service.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class Provenance(str, Enum):
    """Where a returned value came from."""
    CACHED = "cached"
    FETCHED = "fetched"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class FallbackResult(Generic[T]):
    """A value tagged with its provenance and, for fallbacks, the failure reason."""

    value: T
    provenance: Provenance
    reason: Optional[str] = None

    @property
    def from_cache(self) -> bool:
        return self.provenance is Provenance.CACHED

    @property
    def from_upstream(self) -> bool:
        return self.provenance is Provenance.FETCHED

    @property
    def from_fallback(self) -> bool:
        return self.provenance is Provenance.FALLBACK

    @property
    def cacheable(self) -> bool:
        """Fallback values are never written to the cache."""
        return self.provenance is Provenance.FETCHED


class TrafficResult(BaseModel):
    """Normalized congestion reading for a coordinate pair."""

    model_config = ConfigDict(populate_by_name=True)

    provider: str
    congestion: int = Field(ge=0, le=100)
    from_fallback: Optional[bool] = Field(default=None, alias="fromFallback")
    error: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        """Wire shape ``{provider, congestion, fromFallback?, error?}``."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_cache(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_cached(cls, payload: Dict[str, Any]) -> "TrafficResult":
        return cls.model_validate(payload)
