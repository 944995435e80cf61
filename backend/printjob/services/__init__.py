"""
PrintJob Services

Business logic layer for:
- Print job storage and lifecycle
- Printer resolution (preference, then default)
- Dispatch to the print sink
- Retention sweeps
"""

from printjob.services import (
    dispatcher,
    errors,
    janitor,
    job_store,
    print_sink,
    printer_registry,
)

__all__ = [
    "dispatcher",
    "errors",
    "janitor",
    "job_store",
    "print_sink",
    "printer_registry",
]
