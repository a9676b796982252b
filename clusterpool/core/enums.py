from __future__ import annotations

from enum import StrEnum


class HealthCheckStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
