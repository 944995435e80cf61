import asyncio
import json

import httpx
import pytest
import redis

from printjob.core.config import Settings
from printjob.services.errors import SinkUnavailableError
from printjob.services.print_sink import HttpPrintSink, RedisQueueSink, build_print_sink


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.lists = {}
        self.hashes = {}

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("Connection refused")

    def lpush(self, name, value):
        self._check()
        self.lists.setdefault(name, []).insert(0, value)
        return len(self.lists[name])

    def hgetall(self, name):
        self._check()
        return dict(self.hashes.get(name, {}))

    def ping(self):
        self._check()
        return True


def test_redis_sink_enqueues_on_printer_queue():
    client = FakeRedis()
    sink = RedisQueueSink(client, queue_prefix="print_queue")

    result = asyncio.run(sink.send(7, "P1", "invoice.pdf", "/docs/invoice.pdf", "application/pdf"))

    assert result.accepted is True
    payload = json.loads(client.lists["print_queue:P1"][0])
    assert payload == {
        "job_id": 7,
        "printer_id": "P1",
        "file_name": "invoice.pdf",
        "file_path": "/docs/invoice.pdf",
        "content_type": "application/pdf",
    }


def test_redis_sink_unreachable():
    sink = RedisQueueSink(FakeRedis(fail=True))

    with pytest.raises(SinkUnavailableError):
        asyncio.run(sink.send(7, "P1", "invoice.pdf", "/docs/invoice.pdf", "application/pdf"))
    assert asyncio.run(sink.ping()) is False


def test_redis_sink_lists_advertised_printers():
    client = FakeRedis()
    client.hashes["print_printers"] = {
        "P2": json.dumps({"name": "P2", "display_name": "Office laser", "status": "online"}),
        "P1": "",
        "P3": "not json",
    }
    sink = RedisQueueSink(client)

    printers = asyncio.run(sink.list_printers())

    assert [p.id for p in printers] == ["P1", "P2", "P3"]
    assert printers[1].display_name == "Office laser"
    assert printers[1].status == "online"
    assert printers[0].name == "P1"


def make_http_sink(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpPrintSink("http://print-service.local/", client=client)


def test_http_sink_accepted():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"accepted": True, "message": "spooled"})

    result = asyncio.run(make_http_sink(handler).send(3, "P1", "a.pdf", "/docs/a.pdf", "application/pdf"))

    assert result.accepted is True
    assert result.message == "spooled"
    assert seen["url"] == "http://print-service.local/jobs"
    assert seen["body"]["job_id"] == 3


def test_http_sink_refusal():
    def handler(request):
        return httpx.Response(422, json={"message": "unknown printer"})

    result = asyncio.run(make_http_sink(handler).send(3, "PX", "a.pdf", "/docs/a.pdf", "application/pdf"))

    assert result.accepted is False
    assert result.message == "unknown printer"


def test_http_sink_accepted_false_body():
    def handler(request):
        return httpx.Response(200, json={"accepted": False, "message": "paper jam"})

    result = asyncio.run(make_http_sink(handler).send(3, "P1", "a.pdf", "/docs/a.pdf", "application/pdf"))

    assert result.accepted is False
    assert result.message == "paper jam"


def test_http_sink_server_error_is_unavailable():
    def handler(request):
        return httpx.Response(503)

    with pytest.raises(SinkUnavailableError):
        asyncio.run(make_http_sink(handler).send(3, "P1", "a.pdf", "/docs/a.pdf", "application/pdf"))


def test_http_sink_transport_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SinkUnavailableError):
        asyncio.run(make_http_sink(handler).send(3, "P1", "a.pdf", "/docs/a.pdf", "application/pdf"))


@pytest.mark.parametrize("body", [["ok"], "ok", 1])
def test_http_sink_non_object_success_body_is_unavailable(body):
    def handler(request):
        return httpx.Response(200, json=body)

    with pytest.raises(SinkUnavailableError):
        asyncio.run(make_http_sink(handler).send(3, "P1", "a.pdf", "/docs/a.pdf", "application/pdf"))


def test_http_sink_non_object_refusal_body():
    def handler(request):
        return httpx.Response(400, json=["bad request"])

    result = asyncio.run(make_http_sink(handler).send(3, "P1", "a.pdf", "/docs/a.pdf", "application/pdf"))

    assert result.accepted is False
    assert result.message == "Print service refused job (400)"


def test_http_sink_lists_printers():
    def handler(request):
        assert request.url.path == "/printers"
        return httpx.Response(200, json={"printers": [
            {"id": "P1", "name": "Front desk", "type": "color"},
            {"name": "P2"},
            {"status": "online"},
        ]})

    printers = asyncio.run(make_http_sink(handler).list_printers())

    assert [(p.id, p.name) for p in printers] == [("P1", "Front desk"), ("P2", "P2")]
    assert printers[0].type == "color"


def test_build_print_sink():
    redis_sink = build_print_sink(Settings(_env_file=None, PRINT_SINK="redis"))
    assert isinstance(redis_sink, RedisQueueSink)

    http_sink = build_print_sink(Settings(_env_file=None, PRINT_SINK="http", PRINT_SINK_URL="http://print:9000"))
    assert isinstance(http_sink, HttpPrintSink)
    asyncio.run(http_sink.close())

    with pytest.raises(ValueError):
        build_print_sink(Settings(_env_file=None, PRINT_SINK="http", PRINT_SINK_URL=""))
    with pytest.raises(ValueError):
        build_print_sink(Settings(_env_file=None, PRINT_SINK="carrier-pigeon"))
