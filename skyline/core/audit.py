"""Admin action log."""

from typing import Any

from skyline.models.audit_log import AuditLog


async def log_admin_action(
    admin_id: str,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append to admin_logs collection."""
    await AuditLog(
        admin_id=admin_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata=metadata or {},
    ).insert()


async def list_admin_actions(limit: int, offset: int) -> list[AuditLog]:
    return await AuditLog.find_all().sort(-AuditLog.created_at).skip(offset).limit(limit).to_list()
