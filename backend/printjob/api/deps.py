"""
Shared FastAPI dependencies.

Services are created once by the application lifespan and kept on app.state.
"""

from fastapi import Header, HTTPException, Request, status

from printjob.services.dispatcher import Dispatcher
from printjob.services.job_store import JobStore
from printjob.services.printer_registry import PrinterRegistry


def verify_api_key(request: Request, x_api_key: str = Header(None, alias="X-API-Key")):
    """
    Verify the API key when one is configured.
    """
    expected = request.app.state.settings.API_KEY
    if expected and x_api_key != expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"kind": "forbidden", "message": "Invalid or missing API key"}
        )
    return True


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


def get_registry(request: Request) -> PrinterRegistry:
    return request.app.state.registry


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher
