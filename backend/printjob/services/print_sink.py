"""
Print Sinks for PrintJob

A print sink is whatever actually gets a document onto a printer. The
service only hands jobs over (fire-and-forget) and never waits for the
print itself:

- RedisQueueSink: pushes the job onto a per-printer Redis list consumed by
  the print worker, which reports the outcome through the REST API
- HttpPrintSink: posts the job to a remote print service
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
import redis

from printjob.services.errors import SinkUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class SinkResult:
    accepted: bool
    message: str = ""


@dataclass
class PrinterInfo:
    id: str
    name: str = ""
    display_name: str = ""
    owner_name: str = ""
    status: str = "unknown"
    connection_status: str = "unknown"
    type: str = ""
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, printer_id: str, data: dict) -> "PrinterInfo":
        known = {"name", "display_name", "owner_name", "status", "connection_status", "type"}
        return cls(
            id=printer_id,
            name=data.get("name") or printer_id,
            display_name=data.get("display_name") or data.get("name") or printer_id,
            owner_name=data.get("owner_name", ""),
            status=data.get("status", "unknown"),
            connection_status=data.get("connection_status", "unknown"),
            type=data.get("type", ""),
            extra={k: v for k, v in data.items() if k not in known and k != "id"},
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "owner_name": self.owner_name,
            "status": self.status,
            "connection_status": self.connection_status,
            "type": self.type,
            **self.extra,
        }


def build_job_payload(
    job_id: int,
    printer_id: str,
    file_name: str,
    file_path: str,
    content_type: str
) -> dict:
    return {
        "job_id": job_id,
        "printer_id": printer_id,
        "file_name": file_name,
        "file_path": file_path,
        "content_type": content_type,
    }


class PrintSink:
    """Interface implemented by every print sink."""

    name = "base"

    async def send(
        self,
        job_id: int,
        printer_id: str,
        file_name: str,
        file_path: str,
        content_type: str
    ) -> SinkResult:
        """
        Hand a job over to the sink.

        Returns whether the sink accepted it. Raises SinkUnavailableError when
        the hand-over could not be attempted at all.
        """
        raise NotImplementedError

    async def list_printers(self) -> List[PrinterInfo]:
        raise NotImplementedError

    async def ping(self) -> bool:
        try:
            await self.list_printers()
            return True
        except SinkUnavailableError:
            return False

    async def close(self):
        pass


class RedisQueueSink(PrintSink):
    """
    Queue sink backed by Redis lists, one list per printer.
    """

    name = "redis"

    def __init__(
        self,
        client: redis.Redis,
        queue_prefix: str = "print_queue",
        registry_key: str = "print_printers"
    ):
        self.client = client
        self.queue_prefix = queue_prefix
        self.registry_key = registry_key

    def queue_name(self, printer_id: str) -> str:
        return f"{self.queue_prefix}:{printer_id}"

    async def send(self, job_id, printer_id, file_name, file_path, content_type) -> SinkResult:
        payload = json.dumps(build_job_payload(job_id, printer_id, file_name, file_path, content_type))
        queue = self.queue_name(printer_id)
        try:
            await asyncio.to_thread(self.client.lpush, queue, payload)
        except redis.RedisError as e:
            logger.error(f"Failed to enqueue job {job_id} to {queue}: {e}")
            raise SinkUnavailableError(f"Print queue unavailable: {e}") from e

        logger.info(f"Enqueued job {job_id} to {queue}")
        return SinkResult(accepted=True, message=f"Queued on {queue}")

    async def list_printers(self) -> List[PrinterInfo]:
        try:
            entries = await asyncio.to_thread(self.client.hgetall, self.registry_key)
        except redis.RedisError as e:
            raise SinkUnavailableError(f"Printer registry unavailable: {e}") from e

        printers = []
        for printer_id, raw in sorted(entries.items()):
            try:
                data = json.loads(raw) if raw else {}
            except json.JSONDecodeError:
                logger.warning(f"Ignoring malformed registry entry for printer {printer_id}")
                data = {}
            printers.append(PrinterInfo.from_dict(printer_id, data))
        return printers

    async def ping(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self.client.ping))
        except redis.RedisError:
            return False


class HttpPrintSink(PrintSink):
    """
    Sink that forwards jobs to a remote print service over HTTP.

    POST {base_url}/jobs with the job payload; the service answers
    {"accepted": bool, "message": str}. GET {base_url}/printers lists printers.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"X-API-Key": api_key} if api_key else {}
        self.client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def send(self, job_id, printer_id, file_name, file_path, content_type) -> SinkResult:
        payload = build_job_payload(job_id, printer_id, file_name, file_path, content_type)
        try:
            response = await self.client.post(f"{self.base_url}/jobs", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Print service unreachable for job {job_id}: {e}")
            raise SinkUnavailableError(f"Print service unreachable: {e}") from e

        if response.status_code >= 500:
            raise SinkUnavailableError(
                f"Print service error {response.status_code} for job {job_id}"
            )

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not isinstance(body, dict):
            if response.status_code < 400:
                raise SinkUnavailableError(
                    f"Malformed response from print service for job {job_id}"
                )
            body = {}

        if response.status_code >= 400:
            message = body.get("message") or f"Print service refused job ({response.status_code})"
            logger.warning(f"Job {job_id} refused by print service: {message}")
            return SinkResult(accepted=False, message=message)

        accepted = bool(body.get("accepted", True))
        message = body.get("message", "")
        if not accepted:
            logger.warning(f"Job {job_id} refused by print service: {message}")
        return SinkResult(accepted=accepted, message=message)

    async def list_printers(self) -> List[PrinterInfo]:
        try:
            response = await self.client.get(f"{self.base_url}/printers")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SinkUnavailableError(f"Cannot list printers: {e}") from e

        if isinstance(data, dict):
            data = data.get("printers", [])
        return [
            PrinterInfo.from_dict(str(item.get("id") or item.get("name")), item)
            for item in data
            if item.get("id") or item.get("name")
        ]

    async def close(self):
        await self.client.aclose()


def build_print_sink(settings) -> PrintSink:
    """Factory for the sink selected by PRINT_SINK."""
    kind = (settings.PRINT_SINK or "redis").lower()

    if kind == "redis":
        from printjob.core.redis_client import create_redis_client
        return RedisQueueSink(
            create_redis_client(settings),
            queue_prefix=settings.PRINT_QUEUE_PREFIX,
            registry_key=settings.PRINTER_REGISTRY_KEY,
        )

    if kind == "http":
        if not settings.PRINT_SINK_URL:
            raise ValueError("PRINT_SINK_URL is required when PRINT_SINK=http")
        return HttpPrintSink(
            settings.PRINT_SINK_URL,
            timeout=settings.PRINT_SINK_TIMEOUT,
            api_key=settings.API_KEY or None,
        )

    raise ValueError(f"Unknown print sink: {settings.PRINT_SINK}")
