"""Operational endpoints: Prometheus metrics, health and readiness."""

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session

from database import get_db
from .health import (
    ComponentHealth,
    HealthStatus,
    check_broker_health,
    check_database_health,
    check_policy_health,
    get_overall_health,
)

router = APIRouter(tags=["Observability"])


def _component_json(component: ComponentHealth) -> dict:
    data = {
        "status": component.status.value,
        "message": component.message,
        "latency_ms": component.latency_ms,
    }
    if component.details:
        data["details"] = component.details
    return data


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get(
    "/health",
    summary="Component health",
    description="Database, policy configuration and Celery broker status",
)
def health_check(db: Session = Depends(get_db)) -> JSONResponse:
    """200 while healthy or degraded, 503 once any component is unhealthy."""
    components = {
        "database": check_database_health(db),
        "policies": check_policy_health(db),
        "broker": check_broker_health(),
    }
    overall = get_overall_health(components)

    return JSONResponse(
        status_code=(
            status.HTTP_503_SERVICE_UNAVAILABLE
            if overall == HealthStatus.UNHEALTHY
            else status.HTTP_200_OK
        ),
        content={
            "status": overall.value,
            "components": {name: _component_json(c) for name, c in components.items()},
        },
    )


@router.get(
    "/ready",
    summary="Readiness probe",
    description="Ready once the database answers and the policy set loads",
)
def readiness_check(db: Session = Depends(get_db)):
    for name, component in (
        ("database", check_database_health(db)),
        ("policies", check_policy_health(db)),
    ):
        if component.status != HealthStatus.HEALTHY:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready", "component": name, "message": component.message},
            )
    return {"status": "ready", "message": "Accepting scans and lifecycle actions"}
