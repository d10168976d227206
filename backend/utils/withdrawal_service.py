import logging
from datetime import datetime

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from models.wallet import Subject
from models.withdrawal import WithdrawalAction, WithdrawStatus
from utils.errors import (
    AlreadyProcessedError,
    InvalidStateError,
    LedgerError,
    MissingReferenceError,
    NotFoundError,
    ValidationError,
    failure_result,
    storage_failure,
)
from utils.guards import to_object_id
from utils.mongo import run_in_transaction
from utils.wallet_service import credit_wallet

logger = logging.getLogger(__name__)


async def _transition(db, request_id, expected: WithdrawStatus, changes: dict, session=None) -> dict:
    """
    Compare-and-set on the request status. The status check and the write
    are one operation, so a second concurrent action finds nothing to update.
    """
    request = await db.withdraw_requests.find_one_and_update(
        {"_id": request_id, "status": expected.value},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
        session=session,
    )
    if request is not None:
        return request

    current = await db.withdraw_requests.find_one({"_id": request_id}, session=session)
    if current is None:
        raise NotFoundError("Withdrawal request not found")

    status = current.get("status")
    if expected == WithdrawStatus.APPROVED and status == WithdrawStatus.PENDING.value:
        raise InvalidStateError("Withdrawal must be approved before it can be completed")
    if expected == WithdrawStatus.APPROVED and status == WithdrawStatus.REJECTED.value:
        raise InvalidStateError("Rejected withdrawals cannot be completed")
    raise AlreadyProcessedError("Request is already processed")


async def _approve(db, request_id, session):
    now = datetime.utcnow()
    # funds were deducted when the request was created; nothing moves here
    return await _transition(db, request_id, WithdrawStatus.PENDING, {
        "status": WithdrawStatus.APPROVED.value,
        "processed_at": now,
        "updated_at": now,
    }, session=session)


async def _reject(db, request_id, remark, session):
    now = datetime.utcnow()
    request = await _transition(db, request_id, WithdrawStatus.PENDING, {
        "status": WithdrawStatus.REJECTED.value,
        "remarks": remark,
        "processed_at": now,
        "updated_at": now,
    }, session=session)

    await credit_wallet(
        db,
        Subject.parse(request.get("subject_type"), request.get("subject_id")),
        request["amount_paise"],
        f"Withdrawal Rejected: {request_id}",
        related_withdrawal_id=request_id,
        session=session,
    )
    return request


async def _complete(db, request_id, settlement_reference, session):
    now = datetime.utcnow()
    return await _transition(db, request_id, WithdrawStatus.APPROVED, {
        "status": WithdrawStatus.COMPLETED.value,
        "settlement_reference": settlement_reference,
        "completed_at": now,
        "updated_at": now,
    }, session=session)


async def _run(db, request_id, step, log_code: str) -> dict | None:
    try:
        return await run_in_transaction(db, step)
    except LedgerError as e:
        logger.warning("%s_REJECTED request=%s code=%s", log_code, request_id, e.error_code)
        raise
    except PyMongoError:
        logger.exception("%s_ERROR request=%s", log_code, request_id)
        raise


async def approve_withdrawal(db, request_id) -> dict:
    oid = to_object_id(request_id, "request id")
    return await _run(db, request_id, lambda s: _approve(db, oid, s), "WITHDRAWAL_APPROVE")


async def reject_withdrawal(db, request_id, remark: str | None = None) -> dict:
    oid = to_object_id(request_id, "request id")
    return await _run(db, request_id, lambda s: _reject(db, oid, remark, s), "WITHDRAWAL_REJECT")


async def complete_withdrawal(db, request_id, settlement_reference: str | None) -> dict:
    """
    Approved -> Completed, recording the external settlement reference.
    """
    reference = (settlement_reference or "").strip()
    if not reference:
        raise MissingReferenceError()

    oid = to_object_id(request_id, "request id")
    return await _run(db, request_id, lambda s: _complete(db, oid, reference, s), "WITHDRAWAL_COMPLETE")


# ==============================
# Result-returning entry points
# ==============================

async def process_withdrawal(db, request_id, action, remark: str | None = None) -> dict:
    if not request_id or not action:
        return failure_result(ValidationError("Request ID and Action are required"))

    try:
        action = WithdrawalAction(action)
    except ValueError:
        return failure_result(ValidationError("Action must be Approve or Reject"))

    try:
        if action == WithdrawalAction.APPROVE:
            request = await approve_withdrawal(db, request_id)
        else:
            request = await reject_withdrawal(db, request_id, remark)
    except LedgerError as e:
        return failure_result(e)
    except PyMongoError:
        return storage_failure("Processing failed")

    logger.info("WITHDRAWAL_PROCESSED request=%s status=%s", request_id, request["status"])
    return {
        "success": True,
        "message": f"Withdrawal {request['status']} successfully",
        "status": request["status"],
    }


async def finalize_withdrawal(db, request_id, settlement_reference: str | None) -> dict:
    try:
        request = await complete_withdrawal(db, request_id, settlement_reference)
    except LedgerError as e:
        return failure_result(e)
    except PyMongoError:
        return storage_failure("Completion failed")

    logger.info("WITHDRAWAL_COMPLETED request=%s", request_id)
    return {
        "success": True,
        "message": "Withdrawal completed successfully",
        "status": request["status"],
    }
