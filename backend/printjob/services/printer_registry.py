"""
Printer Registry for PrintJob

Resolves the logical target of a print (module + user) to a printer id:
1. the printer the user chose for that module
2. otherwise the global default printer

Configuration lives in the database and is cached in-process; the last
writer wins.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from printjob.models import PrinterPreference, PrinterSetting
from printjob.services.errors import InvalidRequestError, NoPrinterConfiguredError, StorageError

logger = logging.getLogger(__name__)

DEFAULT_PRINTER_SETTING = "default_printer_id"


@dataclass(frozen=True)
class PrinterTarget:
    module: str
    user_id: int
    resolved_printer_id: str
    from_preference: bool


class PrinterRegistry:

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self._default: Optional[str] = None
        self._preferences: Dict[Tuple[str, int], str] = {}
        self._loaded = False
        self._load_lock = asyncio.Lock()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Printer configuration storage failure: {e}")
            raise StorageError(f"Printer configuration storage failure: {e}") from e

    async def _ensure_loaded(self):
        if self._loaded:
            return
        async with self._load_lock:
            if self._loaded:
                return
            async with self._session() as db:
                default = await db.scalar(
                    select(PrinterSetting.value).where(PrinterSetting.name == DEFAULT_PRINTER_SETTING)
                )
                rows = (await db.execute(select(PrinterPreference))).scalars().all()

            self._default = default or None
            self._preferences = {(row.module, row.user_id): row.printer_id for row in rows}
            self._loaded = True

    def invalidate(self):
        """Drop the cached configuration; the next lookup reloads it."""
        self._loaded = False

    # =========================================================================
    # LOOKUP
    # =========================================================================

    async def resolve_target(self, module: str, user_id: int) -> PrinterTarget:
        await self._ensure_loaded()

        printer_id = self._preferences.get((module, user_id))
        if printer_id:
            return PrinterTarget(module, user_id, printer_id, from_preference=True)

        if self._default:
            return PrinterTarget(module, user_id, self._default, from_preference=False)

        raise NoPrinterConfiguredError(
            f"No printer configured for module '{module}' and user {user_id}, "
            "and no default printer defined"
        )

    async def resolve(self, module: str, user_id: int) -> str:
        """
        Return the printer id for (module, user_id).

        Raises:
            NoPrinterConfiguredError: no preference and no default printer
        """
        target = await self.resolve_target(module, user_id)
        return target.resolved_printer_id

    async def get_default(self) -> Optional[str]:
        await self._ensure_loaded()
        return self._default

    async def list_preferences(self) -> List[dict]:
        await self._ensure_loaded()
        return [
            {"module": module, "user_id": user_id, "printer_id": printer_id}
            for (module, user_id), printer_id in sorted(self._preferences.items())
        ]

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================
    # Writes hold the load lock so a concurrent first load cannot replace the
    # cache with rows read before the write committed.

    async def set_default(self, printer_id: str):
        if not printer_id:
            raise InvalidRequestError("printer_id is required")

        async with self._load_lock:
            async with self._session() as db:
                setting = await db.get(PrinterSetting, DEFAULT_PRINTER_SETTING)
                if setting is None:
                    db.add(PrinterSetting(name=DEFAULT_PRINTER_SETTING, value=printer_id))
                else:
                    setting.value = printer_id
                await db.commit()

            self._default = printer_id
        logger.info(f"Default printer set to {printer_id}")

    async def seed_default(self, printer_id: Optional[str]) -> bool:
        """
        Store printer_id as the default unless one is already configured.
        """
        if not printer_id:
            return False
        if await self.get_default():
            return False
        await self.set_default(printer_id)
        return True

    async def set_preference(self, module: str, user_id: int, printer_id: str):
        if not module:
            raise InvalidRequestError("module is required")
        if not printer_id:
            raise InvalidRequestError("printer_id is required")

        async with self._load_lock:
            async with self._session() as db:
                result = await db.execute(
                    select(PrinterPreference).where(
                        and_(PrinterPreference.module == module, PrinterPreference.user_id == user_id)
                    )
                )
                preference = result.scalars().first()
                if preference is None:
                    db.add(PrinterPreference(module=module, user_id=user_id, printer_id=printer_id))
                else:
                    preference.printer_id = printer_id
                await db.commit()

            self._preferences[(module, user_id)] = printer_id
        logger.info(f"Printer for module '{module}', user {user_id} set to {printer_id}")

    async def clear_preference(self, module: str, user_id: int) -> bool:
        async with self._load_lock:
            async with self._session() as db:
                result = await db.execute(
                    delete(PrinterPreference).where(
                        and_(PrinterPreference.module == module, PrinterPreference.user_id == user_id)
                    )
                )
                await db.commit()

            self._preferences.pop((module, user_id), None)
        removed = (result.rowcount or 0) > 0
        if removed:
            logger.info(f"Cleared printer preference for module '{module}', user {user_id}")
        return removed
