"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from changetrail.audit.service import AuditLogService
from changetrail.config import Settings


def get_audit_service(request: Request) -> AuditLogService:
    """Return the audit service the application was created with."""
    return request.app.state.audit_service


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was created with."""
    return request.app.state.settings


# Type aliases for dependencies
AuditServiceDep = Annotated[AuditLogService, Depends(get_audit_service)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
