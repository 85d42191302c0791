from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.core.db import AsyncSessionLocal
from app.core.config import RECEIPT_SWEEP_HOUR

from app.services.procurement.receipt_sweep_service import reconcile_open_receipts

scheduler = AsyncIOScheduler()

@scheduler.scheduled_job("cron", hour=RECEIPT_SWEEP_HOUR, minute=15)  # nightly
async def receipt_reconciliation_job():
    async with AsyncSessionLocal() as db:
        await reconcile_open_receipts(db)
