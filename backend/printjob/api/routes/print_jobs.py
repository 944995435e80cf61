"""
Print Jobs API for PrintJob

Endpoints used by:
1. Callers - to submit documents and follow their jobs
2. Print worker / print service - to report job outcomes
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from printjob.api.deps import get_dispatcher, get_job_store, verify_api_key
from printjob.core.config import get_settings
from printjob.models import JobStatus
from printjob.schemas import PrintJobStatusUpdate, PrintJobSubmit
from printjob.services.dispatcher import Dispatcher
from printjob.services.errors import (
    InvalidRequestError,
    InvalidTransitionError,
    JobNotFoundError,
    StorageError,
)
from printjob.services.job_store import JobFilter, JobSort, JobStore

router = APIRouter(dependencies=[Depends(verify_api_key)])
logger = logging.getLogger(__name__)
settings = get_settings()


def parse_status(value: str) -> JobStatus:
    status_upper = value.strip().upper()
    if status_upper not in JobStatus.__members__:
        raise HTTPException(
            status_code=400,
            detail={"kind": "invalid_request", "message": f"Invalid status: {value}"}
        )
    return JobStatus[status_upper]


@router.get("/{job_id}")
async def get_print_job(
    job_id: int,
    store: JobStore = Depends(get_job_store)
):
    """
    Fetch one print job.
    """
    try:
        job = await store.get(job_id)
        return job.to_dict()

    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


@router.get("")
async def list_print_jobs(
    sortfield: str = "id",
    sortorder: str = "asc",
    limit: int = Query(settings.LIST_DEFAULT_LIMIT, ge=1, le=settings.LIST_MAX_LIMIT),
    page: int = Query(0, ge=0),
    status_filter: Optional[str] = Query(None, alias="status"),
    module: Optional[str] = None,
    printer_id: Optional[str] = None,
    user_id: Optional[int] = None,
    store: JobStore = Depends(get_job_store)
):
    """
    List print jobs, one page at a time.

    One extra row is fetched to tell whether another page exists; at most
    `limit` jobs are returned.
    """
    job_filter = JobFilter(
        status=parse_status(status_filter) if status_filter else None,
        module_part=module,
        printer_id=printer_id,
        created_by=user_id,
    )
    offset = limit * page

    try:
        jobs = await store.list_jobs(
            job_filter,
            JobSort(field=sortfield, order=sortorder),
            limit=limit + 1,
            offset=offset,
        )

    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())

    return {
        "jobs": [job.to_dict() for job in jobs[:limit]],
        "limit": limit,
        "page": page,
        "has_more": len(jobs) > limit,
    }


@router.post("")
async def submit_print_job(
    request: PrintJobSubmit,
    dispatcher: Dispatcher = Depends(get_dispatcher)
):
    """
    Submit a document for printing.

    A request the service could not hand to a printer still answers 200,
    with accepted=false and the reason.
    """
    try:
        result = await dispatcher.submit(
            file_path=request.file_path,
            content_type=request.content_type,
            module=request.module,
            user_id=request.user_id,
            subdir=request.subdir,
        )
        return result.to_dict()

    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


@router.put("/{job_id}")
async def update_print_job_status(
    job_id: int,
    update: PrintJobStatusUpdate,
    store: JobStore = Depends(get_job_store)
):
    """
    Apply a status transition.

    Called by the print worker or print service to report progress:
    - COMPLETED: job printed
    - FAILED: job failed (message carries the reason)
    - CANCELLED: job withdrawn before it was sent
    """
    new_status = parse_status(update.status)

    try:
        job = await store.update_status(job_id, new_status, update.message)
        return job.to_dict()

    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


@router.post("/{job_id}/cancel")
async def cancel_print_job(
    job_id: int,
    dispatcher: Dispatcher = Depends(get_dispatcher)
):
    """
    Cancel a job that has not been sent to a printer yet.
    """
    try:
        job = await dispatcher.cancel(job_id)
        return job.to_dict()

    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


@router.delete("/{job_id}")
async def delete_print_job(
    job_id: int,
    store: JobStore = Depends(get_job_store)
):
    try:
        await store.delete(job_id)
        return {"status": "success", "id": job_id}

    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())
