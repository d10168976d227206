from datetime import datetime


async def log_admin_action(
    db,
    admin: dict,
    action: str,
    metadata: dict | None = None,
):
    """
    Append-only trail of admin actions that move money or change rates.
    """
    await db.audit_logs.insert_one({
        "actor_id": str(admin["_id"]),
        "actor_role": admin.get("role", "admin"),
        "action": action,
        "metadata": metadata or {},
        "created_at": datetime.utcnow(),
    })
