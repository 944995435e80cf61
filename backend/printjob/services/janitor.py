"""
Retention sweep for print job records.
"""

import asyncio
import logging

from printjob.services.job_store import JobStore

logger = logging.getLogger(__name__)


class JanitorSweep:
    """
    Purges jobs older than the retention window.

    Runs opportunistically on every submission and, optionally, on a fixed
    interval. A sweep never raises: failures are logged and reported as zero
    deleted rows.
    """

    def __init__(self, store: JobStore, retention_seconds: int = 3600):
        self.store = store
        self.retention_seconds = retention_seconds

    async def sweep(self) -> int:
        try:
            return await self.store.delete_expired(self.retention_seconds)
        except Exception as e:
            logger.error(f"Print job retention sweep failed: {e}", exc_info=True)
            return 0

    async def run_forever(self, interval_seconds: float):
        logger.info(
            f"Retention sweep every {interval_seconds}s "
            f"(retention {self.retention_seconds}s)"
        )
        while True:
            await asyncio.sleep(interval_seconds)
            await self.sweep()
