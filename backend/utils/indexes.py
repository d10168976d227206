from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure


def _normalize_key_pairs(keys):
    return [(k, v) for k, v in keys]


async def _create_index_safe(collection, keys, **kwargs):
    """
    Create index safely.
    If Mongo reports IndexOptionsConflict/IndexKeySpecsConflict for same key pattern,
    drop the conflicting index and recreate with desired options.
    """
    desired_key = _normalize_key_pairs(keys)
    desired_name = kwargs.get("name")
    try:
        await collection.create_index(keys, **kwargs)
        return
    except OperationFailure as e:
        if getattr(e, "code", None) not in {85, 86}:
            raise

        conflicting_names = []
        async for idx in collection.list_indexes():
            idx_key = _normalize_key_pairs(list(idx.get("key", {}).items()))
            if idx_key == desired_key:
                idx_name = idx.get("name")
                if idx_name and idx_name != desired_name:
                    conflicting_names.append(idx_name)

        for idx_name in conflicting_names:
            await collection.drop_index(idx_name)

        await collection.create_index(keys, **kwargs)


async def ensure_indexes(db):
    # Settings singleton
    await _create_index_safe(
        db.app_settings,
        [("key", ASCENDING)],
        name="app_settings_key_unique",
        unique=True,
    )

    # Orders
    await _create_index_safe(
        db.order_items,
        [("order_id", ASCENDING)],
        name="order_items_order_idx",
    )

    # Commissions: one record per (order, subject)
    await _create_index_safe(
        db.commissions,
        [("order_id", ASCENDING), ("type", ASCENDING), ("subject_id", ASCENDING)],
        name="commissions_order_subject_unique",
        unique=True,
    )
    await _create_index_safe(
        db.commissions,
        [("type", ASCENDING), ("subject_id", ASCENDING), ("created_at", DESCENDING)],
        name="commissions_subject_created_at_idx",
    )
    await _create_index_safe(
        db.commissions,
        [("status", ASCENDING), ("created_at", DESCENDING)],
        name="commissions_status_created_at_idx",
    )

    # Wallet transactions
    await _create_index_safe(
        db.wallet_transactions,
        [("subject_type", ASCENDING), ("subject_id", ASCENDING), ("created_at", DESCENDING)],
        name="wallet_transactions_subject_created_at_idx",
    )
    await _create_index_safe(
        db.wallet_transactions,
        [("related_order_id", ASCENDING)],
        name="wallet_transactions_order_idx",
        sparse=True,
    )

    # Withdraw requests
    await _create_index_safe(
        db.withdraw_requests,
        [("status", ASCENDING), ("created_at", DESCENDING)],
        name="withdraw_requests_status_created_at_idx",
    )
    await _create_index_safe(
        db.withdraw_requests,
        [("subject_type", ASCENDING), ("subject_id", ASCENDING), ("created_at", DESCENDING)],
        name="withdraw_requests_subject_created_at_idx",
    )

    # Timeline / audit
    await _create_index_safe(
        db.order_timeline,
        [("order_id", ASCENDING), ("created_at", ASCENDING)],
        name="order_timeline_order_created_at_idx",
    )
    await _create_index_safe(
        db.audit_logs,
        [("action", ASCENDING), ("created_at", DESCENDING)],
        name="audit_logs_action_created_at_idx",
    )
