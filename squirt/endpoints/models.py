"""
Endpoint records and health-check results.

Decision: D-010
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EndpointType(StrEnum):
    QUERY = "query"
    UPDATE = "update"


class EndpointStatus(StrEnum):
    """
    Health state. Transitions: unknown -> checking -> {active, inactive},
    {active, inactive} -> checking. There is no terminal state.
    """

    UNKNOWN = "unknown"
    CHECKING = "checking"
    ACTIVE = "active"
    INACTIVE = "inactive"


ALLOWED_TRANSITIONS: dict[EndpointStatus, frozenset[EndpointStatus]] = {
    EndpointStatus.UNKNOWN: frozenset({EndpointStatus.CHECKING}),
    EndpointStatus.CHECKING: frozenset({EndpointStatus.ACTIVE, EndpointStatus.INACTIVE}),
    EndpointStatus.ACTIVE: frozenset({EndpointStatus.CHECKING}),
    EndpointStatus.INACTIVE: frozenset({EndpointStatus.CHECKING}),
}


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(user={self.user!r}, password='***')"


class Endpoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    label: str = ""
    type: EndpointType = EndpointType.QUERY
    status: EndpointStatus = EndpointStatus.UNKNOWN
    last_checked: Optional[str] = Field(default=None, alias="lastChecked")
    last_error: Optional[str] = Field(default=None, alias="lastError")
    credentials: Optional[Credentials] = None

    @property
    def is_active(self) -> bool:
        return self.status == EndpointStatus.ACTIVE


class EndpointCheckResult(BaseModel):
    url: str
    label: str = ""
    type: EndpointType
    is_active: bool
    error: Optional[str] = None


class HealthSummary(BaseModel):
    any_active: bool = False
    active_by_type: dict[EndpointType, bool] = Field(default_factory=dict)
    results: list[EndpointCheckResult] = Field(default_factory=list)

    @property
    def query_active(self) -> bool:
        return self.active_by_type.get(EndpointType.QUERY, False)

    @property
    def update_active(self) -> bool:
        return self.active_by_type.get(EndpointType.UPDATE, False)

    @classmethod
    def from_results(cls, results: list[EndpointCheckResult]) -> "HealthSummary":
        return cls(
            any_active=any(r.is_active for r in results),
            active_by_type={t: any(r.is_active and r.type == t for r in results) for t in EndpointType},
            results=results,
        )
