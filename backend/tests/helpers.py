"""
Shared test doubles and service wiring for the PrintJob test suite.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta
from types import SimpleNamespace

from printjob.core.database import create_engine_from_url, create_session_factory, init_db
from printjob.models import PrintJob, utcnow
from printjob.services.dispatcher import Dispatcher
from printjob.services.janitor import JanitorSweep
from printjob.services.job_store import JobStore
from printjob.services.print_sink import PrinterInfo, PrintSink, SinkResult
from printjob.services.printer_registry import PrinterRegistry


class FakeSink(PrintSink):
    """In-memory print sink recording every hand-over."""

    name = "fake"

    def __init__(self, accept=True, message="", error=None, delay=0.0, printers=None):
        self.accept = accept
        self.message = message
        self.error = error
        self.delay = delay
        self.printers = printers or []
        self.sent = []

    async def send(self, job_id, printer_id, file_name, file_path, content_type):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append({
            "job_id": job_id,
            "printer_id": printer_id,
            "file_name": file_name,
            "file_path": file_path,
            "content_type": content_type,
        })
        return SinkResult(accepted=self.accept, message=self.message)

    async def list_printers(self):
        if self.error is not None:
            raise self.error
        return [PrinterInfo(id=name, name=name) for name in self.printers]


def make_job(file_name="invoice.pdf", printer_id="P1", module="invoicing", user_id=42, age_seconds=0):
    return PrintJob(
        printer_id=printer_id,
        file_name=file_name,
        file_path=f"/srv/documents/{module}/{file_name}",
        content_type="application/pdf",
        module_part=module,
        created_by=user_id,
        created_at=utcnow() - timedelta(seconds=age_seconds),
    )


@asynccontextmanager
async def open_services(db_url, sink=None, retention_seconds=3600, sink_timeout=1.0, document_root=None):
    engine = create_engine_from_url(db_url)
    await init_db(engine)
    session_factory = create_session_factory(engine)

    sink = sink or FakeSink()
    store = JobStore(session_factory)
    registry = PrinterRegistry(session_factory)
    janitor = JanitorSweep(store, retention_seconds)
    dispatcher = Dispatcher(
        store,
        registry,
        sink,
        janitor=janitor,
        sink_timeout=sink_timeout,
        document_root=document_root,
    )
    try:
        yield SimpleNamespace(
            engine=engine,
            session_factory=session_factory,
            sink=sink,
            store=store,
            registry=registry,
            janitor=janitor,
            dispatcher=dispatcher,
        )
    finally:
        await engine.dispose()
