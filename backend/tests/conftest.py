import asyncio

import pytest
from fastapi.testclient import TestClient

from printjob.core.config import Settings
from printjob.main import create_app
from helpers import FakeSink, open_services


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'printjob.db'}"


@pytest.fixture
def run(db_url):
    """
    Run `scenario(services)` inside a fresh event loop with wired services.
    """
    def _run(scenario, **kwargs):
        async def main():
            async with open_services(db_url, **kwargs) as services:
                return await scenario(services)
        return asyncio.run(main())
    return _run


@pytest.fixture
def fake_sink():
    return FakeSink(printers=["P1", "P2"])


@pytest.fixture
def settings(db_url, tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=db_url,
        API_KEY="",
        PRINT_SINK="redis",
        PRINT_SINK_TIMEOUT=1.0,
        DEFAULT_PRINTER_ID=None,
        JOB_RETENTION_SECONDS=3600,
        JANITOR_INTERVAL_SECONDS=0,
        FILE_STORAGE_PATH=str(tmp_path / "documents"),
    )


@pytest.fixture
def client(settings, fake_sink):
    app = create_app(settings, sink=fake_sink)
    with TestClient(app) as test_client:
        yield test_client
