"""
Dispatcher for PrintJob

Accepts a print request and:
1. Validates it
2. Resolves the target printer (module + user preference, then default)
3. Purges expired jobs (best effort)
4. Records the job as QUEUED and marks it SENT
5. Hands it to the print sink without waiting for the print
   (a failed hand-over ends the job as FAILED)

The caller learns synchronously whether the sink took the job; the final
outcome arrives later as a status update.
"""

import asyncio
import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import List, Optional

from printjob.models import JobStatus, PrintJob
from printjob.services.errors import (
    InvalidRequestError,
    InvalidTransitionError,
    JobNotFoundError,
    NoPrinterConfiguredError,
    SinkUnavailableError,
)
from printjob.services.janitor import JanitorSweep
from printjob.services.job_store import JobStore
from printjob.services.print_sink import PrintSink
from printjob.services.printer_registry import PrinterRegistry

logger = logging.getLogger(__name__)

ACCEPTED_MESSAGE = "The file has been added to the print queue"
REFUSED_KIND = "sink_refused"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class SubmitResult:
    job_id: Optional[int]
    accepted: bool
    error_message: str = ""
    error_kind: Optional[str] = None
    status: Optional[JobStatus] = None
    printer_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "accepted": self.accepted,
            "error_message": self.error_message,
            "error_kind": self.error_kind,
            "status": self.status.value if self.status else None,
            "printer_id": self.printer_id,
        }


def guess_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or DEFAULT_CONTENT_TYPE


class Dispatcher:

    def __init__(
        self,
        store: JobStore,
        registry: PrinterRegistry,
        sink: PrintSink,
        janitor: Optional[JanitorSweep] = None,
        sink_timeout: float = 5.0,
        document_root: Optional[str] = None
    ):
        self.store = store
        self.registry = registry
        self.sink = sink
        self.janitor = janitor
        self.sink_timeout = sink_timeout
        self.document_root = document_root

    def resolve_file_path(self, file_path: str, module: str, subdir: str = "") -> str:
        """
        Without a document root paths are used as given. Otherwise relative
        paths live under <document_root>/<module>/<subdir>, absolute paths must
        sit under the document root, and neither may escape it.
        """
        if not self.document_root:
            return file_path

        if module in (".", "..") or "/" in module or "\\" in module:
            raise InvalidRequestError(f"Invalid module name: {module}")
        subdir = subdir or ""
        if os.path.isabs(subdir) or ".." in subdir.replace("\\", "/").split("/"):
            raise InvalidRequestError(f"Invalid subdir: {subdir}")

        root = os.path.abspath(self.document_root)
        if os.path.isabs(file_path):
            base = root
            resolved = os.path.abspath(file_path)
        else:
            base = os.path.join(root, module)
            resolved = os.path.abspath(os.path.join(base, subdir, file_path))

        if os.path.commonpath([base, resolved]) != base:
            raise InvalidRequestError(f"File path is outside the {module} document directory")
        return resolved

    async def submit(
        self,
        file_path: str,
        content_type: Optional[str],
        module: str,
        user_id: int,
        subdir: str = ""
    ) -> SubmitResult:
        """
        Submit a file for printing.

        The job is recorded QUEUED and moved to SENT before the sink sees it,
        so whatever consumes the sink never observes a QUEUED job. A failed
        hand-over then takes the SENT -> FAILED edge.

        Raises:
            InvalidRequestError: empty file path or module, path outside the document root
            StorageError: the job could not be recorded
        """
        if not file_path or not file_path.strip():
            raise InvalidRequestError("file_path is required")
        if not module or not module.strip():
            raise InvalidRequestError("module is required")
        if user_id is None:
            raise InvalidRequestError("user_id is required")

        try:
            printer_id = await self.registry.resolve(module, user_id)
        except NoPrinterConfiguredError as e:
            logger.warning(f"Print of {file_path} rejected: {e.message}")
            return SubmitResult(
                job_id=None,
                accepted=False,
                error_message=e.message,
                error_kind=e.kind,
            )

        if self.janitor is not None:
            await self.janitor.sweep()

        resolved_path = self.resolve_file_path(file_path, module, subdir)
        file_name = os.path.basename(file_path)
        content_type = content_type or guess_content_type(file_name)

        job_id = await self.store.insert(PrintJob(
            printer_id=printer_id,
            file_name=file_name,
            file_path=resolved_path,
            content_type=content_type,
            module_part=module,
            created_by=user_id,
        ))

        try:
            await self.store.update_status(job_id, JobStatus.SENT, ACCEPTED_MESSAGE)
        except InvalidTransitionError as e:
            # Cancelled before the hand-over
            logger.warning(f"Job {job_id} not handed over: {e.message}")
            return SubmitResult(job_id, False, e.message, e.kind, e.current, printer_id)
        except JobNotFoundError as e:
            logger.warning(f"Job {job_id} was deleted before the hand-over")
            return SubmitResult(job_id, False, e.message, e.kind, None, printer_id)

        try:
            result = await asyncio.wait_for(
                self.sink.send(job_id, printer_id, file_name, resolved_path, content_type),
                timeout=self.sink_timeout,
            )
        except asyncio.TimeoutError:
            error = SinkUnavailableError(f"Print sink did not answer within {self.sink_timeout}s")
            return await self._fail(job_id, printer_id, error.message, error.kind)
        except SinkUnavailableError as e:
            return await self._fail(job_id, printer_id, e.message, e.kind)
        except Exception as e:
            logger.error(f"Job {job_id}: print sink error: {e}", exc_info=True)
            await self._fail(job_id, printer_id, f"Print sink error: {e}", SinkUnavailableError.kind)
            raise

        if not result.accepted:
            message = result.message or "Print sink refused the job"
            return await self._fail(job_id, printer_id, message, REFUSED_KIND)

        if result.message:
            logger.info(f"Job {job_id} handed to {self.sink.name} sink: {result.message}")
        return SubmitResult(job_id, True, "", None, JobStatus.SENT, printer_id)

    async def _fail(self, job_id: int, printer_id: str, message: str, kind: str) -> SubmitResult:
        logger.error(f"Job {job_id}: print sink did not take the job: {message}")
        try:
            job = await self.store.update_status(job_id, JobStatus.FAILED, message)
            status = job.status
        except InvalidTransitionError as e:
            logger.warning(f"Job {job_id} changed during hand-over: {e.message}")
            status = e.current
        except JobNotFoundError:
            logger.warning(f"Job {job_id} was deleted during hand-over")
            status = None
        return SubmitResult(job_id, False, message, kind, status, printer_id)

    async def cancel(self, job_id: int) -> PrintJob:
        """Cancel a job that has not been sent yet."""
        return await self.store.update_status(job_id, JobStatus.CANCELLED, "Cancelled")

    async def list_printers(self) -> List[dict]:
        """
        Printers advertised by the sink, with the configured default flagged.
        """
        printers = await self.sink.list_printers()
        default = await self.registry.get_default()
        return [
            {**printer.to_dict(), "is_default": printer.id == default}
            for printer in printers
        ]
