import json
import subprocess

import pytest

import printer as printer_module
from main import PrintWorker, load_config
from printer import Printer

CONFIG = {
    "backend_url": "http://localhost:8000",
    "redis_url": "redis://localhost:6379/0",
    "queue_prefix": "print_queue",
    "registry_key": "print_printers",
    "printers": ["P1", "P2"],
}


class FakeBackend:
    def __init__(self, jobs=None):
        self.jobs = jobs or {}
        self.updates = []

    def test_connection(self):
        return True

    def get_job_details(self, job_id):
        return self.jobs.get(job_id)

    def update_job_status(self, job_id, status, message=None):
        self.updates.append((job_id, status, message))
        return True


class FakePrinter:
    def __init__(self, result=(True, "request id is P1-12")):
        self.result = result
        self.printed = []

    def get_available_printers(self):
        return ["LOCAL"]

    def print_file(self, file_path, printer_name, content_type=""):
        self.printed.append((file_path, printer_name, content_type))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeRedis:
    def __init__(self):
        self.hashes = {}

    def hset(self, name, key, value):
        self.hashes.setdefault(name, {})[key] = value

    def hdel(self, name, *keys):
        for key in keys:
            self.hashes.get(name, {}).pop(key, None)


def payload(job_id=5, printer_id="P1"):
    return json.dumps({
        "job_id": job_id,
        "printer_id": printer_id,
        "file_name": "invoice.pdf",
        "file_path": "/docs/invoice.pdf",
        "content_type": "application/pdf",
    })


def make_worker(backend, printer, redis_client=None):
    return PrintWorker(CONFIG, backend=backend, printer=printer, redis_client=redis_client or FakeRedis())


def test_successful_job_is_reported_completed():
    backend = FakeBackend({5: {"id": 5, "status": "SENT"}})
    printer = FakePrinter()

    status = make_worker(backend, printer).handle_job(payload())

    assert status == "COMPLETED"
    assert printer.printed == [("/docs/invoice.pdf", "P1", "application/pdf")]
    assert backend.updates == [(5, "COMPLETED", "request id is P1-12")]


def test_failed_print_is_reported_failed():
    backend = FakeBackend({5: {"id": 5, "status": "SENT"}})

    status = make_worker(backend, FakePrinter(result=(False, "printer offline"))).handle_job(payload())

    assert status == "FAILED"
    assert backend.updates == [(5, "FAILED", "printer offline")]


def test_printer_exception_is_reported_failed():
    backend = FakeBackend({5: {"id": 5, "status": "SENT"}})

    status = make_worker(backend, FakePrinter(result=RuntimeError("spooler crashed"))).handle_job(payload())

    assert status == "FAILED"
    assert backend.updates == [(5, "FAILED", "spooler crashed")]


@pytest.mark.parametrize("jobs", [{}, {5: {"id": 5, "status": "COMPLETED"}}])
def test_jobs_no_longer_sent_are_skipped(jobs):
    backend = FakeBackend(jobs)
    printer = FakePrinter()

    assert make_worker(backend, printer).handle_job(payload()) is None
    assert printer.printed == []
    assert backend.updates == []


def test_malformed_payload_is_discarded():
    backend = FakeBackend()

    assert make_worker(backend, FakePrinter()).handle_job("{not json") is None
    assert make_worker(backend, FakePrinter()).handle_job(json.dumps({"file_name": "x"})) is None
    assert backend.updates == []


def test_printers_are_advertised_and_withdrawn():
    redis_client = FakeRedis()
    worker = make_worker(FakeBackend(), FakePrinter(), redis_client)

    worker.advertise_printers()
    entries = redis_client.hashes["print_printers"]
    assert sorted(entries) == ["P1", "P2"]
    assert json.loads(entries["P1"])["status"] == "online"
    assert worker.queue_names() == ["print_queue:P1", "print_queue:P2"]

    worker.withdraw_printers()
    assert redis_client.hashes["print_printers"] == {}


def test_load_config_fills_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"backend_url": "http://backend", "redis_url": "redis://r:6379/0"}))

    config = load_config(str(path))

    assert config["backend_url"] == "http://backend"
    assert config["queue_prefix"] == "print_queue"
    assert config["poll_timeout"] == 30


def test_printer_missing_file(tmp_path):
    success, message = Printer().print_file(str(tmp_path / "missing.pdf"), "P1")

    assert success is False
    assert "not found" in message


def test_printer_uses_lp(tmp_path, monkeypatch):
    document = tmp_path / "invoice.pdf"
    document.write_bytes(b"%PDF-1.4")
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="request id is P1-3 (1 file(s))\n", stderr="")

    printer = Printer()
    monkeypatch.setattr(printer, "is_windows", False)
    monkeypatch.setattr(printer_module.subprocess, "run", fake_run)

    success, message = printer.print_file(str(document), "P1", "application/pdf")

    assert success is True
    assert calls == [["lp", "-d", "P1", str(document)]]
    assert message.startswith("request id is P1-3")


def test_printer_reports_lp_failure(tmp_path, monkeypatch):
    document = tmp_path / "invoice.pdf"
    document.write_bytes(b"%PDF-1.4")

    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="lp: The printer or class does not exist.\n")

    printer = Printer()
    monkeypatch.setattr(printer, "is_windows", False)
    monkeypatch.setattr(printer_module.subprocess, "run", fake_run)

    success, message = printer.print_file(str(document), "NOPE")

    assert success is False
    assert "does not exist" in message
