"""
SPARQL endpoint management: records, bootstrap, registry and health monitor.

Decision: D-010, D-011, D-012
"""

from squirt.endpoints.bootstrap import DEFAULT_ENDPOINTS, parse_endpoint_config, resolve_bootstrap_endpoints
from squirt.endpoints.models import (
    Credentials,
    Endpoint,
    EndpointCheckResult,
    EndpointStatus,
    EndpointType,
    HealthSummary,
)
from squirt.endpoints.monitor import HealthMonitor
from squirt.endpoints.registry import EndpointRegistry

__all__ = [
    "DEFAULT_ENDPOINTS",
    "Credentials",
    "Endpoint",
    "EndpointCheckResult",
    "EndpointRegistry",
    "EndpointStatus",
    "EndpointType",
    "HealthMonitor",
    "HealthSummary",
    "parse_endpoint_config",
    "resolve_bootstrap_endpoints",
]
