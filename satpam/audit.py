from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from satpam.models import AuditActorType, AuditLog

logger = logging.getLogger("satpam.audit")


@dataclass(frozen=True, slots=True)
class AuditRequestContext:
    request_id: str | None = None
    ip: str | None = None
    user_agent: str | None = None


def _client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def request_context(request: Request) -> AuditRequestContext:
    return AuditRequestContext(
        request_id=getattr(request.state, "request_id", None),
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def log_audit(
    db: Session,
    *,
    actor_type: AuditActorType,
    actor_id: str,
    action: str,
    success: bool = True,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
    context: AuditRequestContext | None = None,
) -> None:
    ctx = context or AuditRequestContext()
    db.add(
        AuditLog(
            ts_utc=datetime.now(timezone.utc),
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
            success=success,
            details=details or {},
        )
    )
    log_fields = {
        "request_id": ctx.request_id,
        "action": action,
        "actor_type": actor_type.value,
        "actor_id": actor_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
    }
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("audit_log_write_failed", extra=log_fields)
        return

    logger.info("audit_event", extra={**log_fields, "success": success, "details": details or {}})
