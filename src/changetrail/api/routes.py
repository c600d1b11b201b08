"""Audit log query endpoint and health check."""

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel

from changetrail.api.dependencies import AuditServiceDep, SettingsDep
from changetrail.audit.schemas import Action, AuditRecordResponse


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str


health_router = APIRouter(tags=["health"])

audit_router = APIRouter(prefix="/audit-log", tags=["audit"])


@health_router.get(
    "/health/live",
    response_model=HealthResponse,
    summary="Liveness probe",
)
def liveness() -> HealthResponse:
    """Liveness probe endpoint."""
    return HealthResponse(status="alive")


@audit_router.get(
    "",
    response_model=list[AuditRecordResponse],
    response_model_by_alias=True,
    summary="Audit history of an entity",
    description=(
        "Returns the audit records of one entity, most recent first. "
        "Change values holding JSON are returned as structured JSON."
    ),
)
def find_audit_records(
    service: AuditServiceDep,
    settings: SettingsDep,
    table_name: Annotated[str, Query(alias="tableName", min_length=1)],
    entity_id: Annotated[str, Query(alias="entityId", min_length=1)],
    action: Annotated[Action | None, Query()] = None,
    acting_user: Annotated[str | None, Query(alias="actingUser")] = None,
) -> list[AuditRecordResponse]:
    """Find the audit records of one entity.

    The query runs synchronously in FastAPI's threadpool since the
    store does blocking I/O.
    """
    records = service.find(
        table_name,
        entity_id,
        action=action,
        acting_user=acting_user,
        limit=settings.query_limit,
    )
    return [AuditRecordResponse.from_record(record) for record in records]
