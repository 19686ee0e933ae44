"""Component health for DocLifecycle.

Three components are checked:

- database: required by every operation
- policies: the active policy set must load; a contradictory set (two
  active policies for one category, archive after retention) makes every
  scan fail, so it counts as unhealthy
- broker: Redis only carries the Celery queue and beat; scans still run
  synchronously without it, so a broker failure is degraded
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

import redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from domain.lifecycle.errors import ConfigError, PersistenceError
from .logging_config import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)


def _timed(probe: Callable[[], Any]) -> "tuple[Any, float]":
    started = time.perf_counter()
    value = probe()
    return value, round((time.perf_counter() - started) * 1000, 2)


def check_database_health(db: Session) -> ComponentHealth:
    try:
        _, latency_ms = _timed(lambda: db.execute(text("SELECT 1")))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return ComponentHealth(status=HealthStatus.UNHEALTHY, message=f"Database error: {e}")
    return ComponentHealth(status=HealthStatus.HEALTHY, message="Database reachable", latency_ms=latency_ms)


def check_policy_health(db: Session) -> ComponentHealth:
    """Load the active policy set the way a scan would."""
    from retention.policy_store import PolicyStore

    try:
        snapshot, latency_ms = _timed(lambda: PolicyStore(db).snapshot())
    except ConfigError as e:
        logger.error(f"Policy configuration is invalid: {e}")
        return ComponentHealth(status=HealthStatus.UNHEALTHY, message=str(e))
    except (PersistenceError, SQLAlchemyError) as e:
        return ComponentHealth(status=HealthStatus.UNHEALTHY, message=f"Policies unreadable: {e}")

    active = [p for p in snapshot.policies if p.is_active]
    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message=f"{len(active)} active policies",
        latency_ms=latency_ms,
        details={"categories": sorted(p.document_category.value for p in active)},
    )


def check_broker_health(redis_url: Optional[str] = None) -> ComponentHealth:
    """Ping the Celery broker. Failure only disables async scans and beat."""
    try:
        client = redis.from_url(redis_url or settings.REDIS_URL, socket_connect_timeout=2)
        _, latency_ms = _timed(client.ping)
    except redis.RedisError as e:
        logger.warning(f"Broker health check failed: {e}")
        return ComponentHealth(status=HealthStatus.DEGRADED, message=f"Broker unreachable: {e}")
    return ComponentHealth(status=HealthStatus.HEALTHY, message="Broker reachable", latency_ms=latency_ms)


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    """Worst component status wins."""
    statuses = {c.status for c in components.values()}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
