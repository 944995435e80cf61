"""
Printers API for PrintJob

Administrative endpoints:
- Printers advertised by the print sink
- Global default printer
- Per module / user printer preferences
- Resolution preview
"""

from fastapi import APIRouter, Depends, HTTPException
import logging

from printjob.api.deps import get_dispatcher, get_registry, verify_api_key
from printjob.schemas import DefaultPrinterUpdate, PrinterPreferenceUpdate
from printjob.services.dispatcher import Dispatcher
from printjob.services.errors import (
    InvalidRequestError,
    NoPrinterConfiguredError,
    SinkUnavailableError,
    StorageError,
)
from printjob.services.printer_registry import PrinterRegistry

router = APIRouter(dependencies=[Depends(verify_api_key)])
logger = logging.getLogger(__name__)


@router.get("")
async def list_printers(dispatcher: Dispatcher = Depends(get_dispatcher)):
    """
    List the printers the print sink knows about, default flagged.
    """
    try:
        printers = await dispatcher.list_printers()
        return {"printers": printers}

    except SinkUnavailableError as e:
        raise HTTPException(status_code=503, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


@router.get("/default")
async def get_default_printer(registry: PrinterRegistry = Depends(get_registry)):
    try:
        return {"printer_id": await registry.get_default()}
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


@router.put("/default")
async def set_default_printer(
    update: DefaultPrinterUpdate,
    registry: PrinterRegistry = Depends(get_registry)
):
    try:
        await registry.set_default(update.printer_id)
        return {"status": "success", "printer_id": update.printer_id}

    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


@router.get("/preferences")
async def list_printer_preferences(registry: PrinterRegistry = Depends(get_registry)):
    try:
        return {"preferences": await registry.list_preferences()}
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


@router.put("/preferences")
async def set_printer_preference(
    update: PrinterPreferenceUpdate,
    registry: PrinterRegistry = Depends(get_registry)
):
    try:
        await registry.set_preference(update.module, update.user_id, update.printer_id)
        return {
            "status": "success",
            "module": update.module,
            "user_id": update.user_id,
            "printer_id": update.printer_id,
        }

    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


@router.delete("/preferences")
async def clear_printer_preference(
    module: str,
    user_id: int,
    registry: PrinterRegistry = Depends(get_registry)
):
    try:
        removed = await registry.clear_preference(module, user_id)
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())

    if not removed:
        raise HTTPException(
            status_code=404,
            detail={"kind": "not_found", "message": f"No preference for module '{module}', user {user_id}"}
        )
    return {"status": "success"}


@router.get("/resolve")
async def resolve_printer(
    module: str,
    user_id: int,
    registry: PrinterRegistry = Depends(get_registry)
):
    """
    Show which printer a submission from (module, user_id) would use.
    """
    try:
        target = await registry.resolve_target(module, user_id)
        return {
            "module": target.module,
            "user_id": target.user_id,
            "printer_id": target.resolved_printer_id,
            "from_preference": target.from_preference,
        }

    except NoPrinterConfiguredError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())
