"""
Request bodies for the PrintJob API.
"""

from typing import Optional
from pydantic import BaseModel


class PrintJobSubmit(BaseModel):
    module: str = ""
    user_id: int
    file_path: str = ""
    content_type: Optional[str] = None
    subdir: str = ""


class PrintJobStatusUpdate(BaseModel):
    status: str
    message: Optional[str] = None


class DefaultPrinterUpdate(BaseModel):
    printer_id: str


class PrinterPreferenceUpdate(BaseModel):
    module: str
    user_id: int
    printer_id: str
