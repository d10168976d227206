async def run_in_transaction(db, callback):
    """
    Runs `callback(session)` as one multi-document transaction.
    Transient errors (write conflicts between concurrent units of work)
    are retried by the driver; anything else aborts and propagates.
    """
    async with await db.client.start_session() as session:
        return await session.with_transaction(callback)
