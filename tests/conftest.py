"""
Pytest configuration and shared fixtures.

The Telegram side is replaced by FakeTelegramClient at the service seam; the
link store is the real in-memory store.
"""
import threading

import pytest
from fastapi.testclient import TestClient

from filerelay.config import Settings
from filerelay.main import create_app
from filerelay.routes.files import get_relay_service
from filerelay.services.kv_store import MemoryKeyValueStore
from filerelay.services.relay import FileRelayService
from filerelay.services.telegram_client import FileStream, TelegramDocument


class FakeTelegramClient:
    def __init__(self):
        self.documents = {}
        self.sent = []
        self.send_error = None
        self.fail_on_call = None
        self.get_file_error = None
        self.file_status = 200
        self.closed_streams = 0
        self.open_thread = None
        self.close_threads = []

    async def send_document(self, data, filename, content_type=None):
        call_number = len(self.sent) + 1
        if self.send_error and (self.fail_on_call is None or self.fail_on_call == call_number):
            raise self.send_error
        file_id = f"BQACAgQAAx{len(self.documents) + 1}"
        self.documents[file_id] = (data, filename, content_type or "application/octet-stream")
        self.sent.append(filename)
        return TelegramDocument(
            file_id=file_id,
            file_size=len(data),
            file_name=filename,
            mime_type=content_type,
        )

    async def get_file(self, file_id):
        if self.get_file_error:
            raise self.get_file_error
        return f"documents/{file_id}"

    async def open_file(self, file_path):
        data, _, content_type = self.documents[file_path.rsplit("/", 1)[-1]]

        async def chunks():
            yield data[: len(data) // 2]
            yield data[len(data) // 2:]

        self.open_thread = threading.get_ident()

        async def close():
            self.closed_streams += 1
            self.close_threads.append(threading.get_ident())

        return FileStream(
            status=self.file_status,
            headers={
                "Content-Type": content_type,
                "Content-Length": str(len(data)),
                "Content-Disposition": 'inline; filename="file_0.png"',
                "Date": "Sat, 17 Oct 2026 10:00:00 GMT",
                "Server": "nginx/1.18.0",
            },
            chunks=chunks(),
            close=close,
        )


@pytest.fixture
def settings():
    return Settings(
        TELEGRAM_BOT_TOKEN="123456:test-token",
        TELEGRAM_CHAT_ID="-1001234567890",
        KV_STORE_TYPE="memory",
        _env_file=None,
    )


@pytest.fixture
def fake_telegram():
    return FakeTelegramClient()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def relay(fake_telegram, store, settings):
    return FileRelayService(fake_telegram, store, settings)


@pytest.fixture
def app(settings, relay):
    application = create_app(settings)
    application.dependency_overrides[get_relay_service] = lambda: relay
    return application


@pytest.fixture
def client(app):
    return TestClient(app)
