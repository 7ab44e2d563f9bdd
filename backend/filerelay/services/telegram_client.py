"""Async Telegram Bot API client used as the document store.

Files are sent to a fixed chat with ``sendDocument``; downloads resolve the
returned ``file_id`` with ``getFile`` and stream from the file endpoint.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import aiohttp

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Not forwarded to our own client
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})


class TelegramAPIError(Exception):
    """Failed Bot API call. ``error_code`` is 0 for transport errors."""

    def __init__(self, error_code: int, description: str, method: str):
        self.error_code = error_code
        self.description = description
        self.method = method
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.error_code:
            return f"Telegram {self.method} failed ({self.error_code}): {self.description}"
        return f"Telegram {self.method} connection error: {self.description}"


@dataclass
class TelegramDocument:
    file_id: str
    file_size: Optional[int] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


@dataclass
class FileStream:
    """An open download. ``aclose()`` must be awaited once the body is done with."""
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    chunks: Optional[AsyncIterator[bytes]] = None
    close: Optional[Callable[[], Awaitable[None]]] = None

    async def aclose(self) -> None:
        if self.close is not None:
            await self.close()


class TelegramClient:
    """Async HTTP client for the Telegram Bot API.

    Use as an async context manager to share one connection pool across
    requests. Without ``async with`` a session is opened on first use and
    must be released with ``close()``.
    """

    def __init__(
        self, bot_token: str, chat_id: str,
        base_url: str = "https://api.telegram.org",
        timeout: float = 120,
    ):
        if not bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN not set. Cannot store files.")
        if not chat_id:
            raise ValueError("TELEGRAM_CHAT_ID not set. Cannot store files.")
        self._token = bot_token
        self.chat_id = chat_id
        self.base_url = base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None
        self._timeout = aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=timeout)

    async def open(self) -> None:
        """Open a persistent session for connection pooling."""
        if not self._session:
            self._session = aiohttp.ClientSession()

    async def close(self) -> None:
        """Close the persistent session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "TelegramClient":
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def send_document(
        self, data: bytes, filename: str,
        content_type: Optional[str] = None,
    ) -> TelegramDocument:
        """Store ``data`` in the configured chat and return the document handle."""
        form = aiohttp.FormData()
        form.add_field("chat_id", self.chat_id)
        form.add_field(
            "document", data,
            filename=filename,
            content_type=content_type or "application/octet-stream",
        )
        result = await self._call("sendDocument", data=form)

        document = result.get("document") if isinstance(result, dict) else None
        if not document or not document.get("file_id"):
            raise TelegramAPIError(0, "Response has no document", "sendDocument")
        return TelegramDocument(
            file_id=document["file_id"],
            file_size=document.get("file_size"),
            file_name=document.get("file_name"),
            mime_type=document.get("mime_type"),
        )

    async def get_file(self, file_id: str) -> str:
        """Resolve a ``file_id`` to the relative ``file_path`` on the file endpoint."""
        result = await self._call("getFile", json={"file_id": file_id})
        file_path = result.get("file_path") if isinstance(result, dict) else None
        if not file_path:
            raise TelegramAPIError(0, "Response has no file_path", "getFile")
        return file_path

    async def open_file(self, file_path: str) -> FileStream:
        """Start downloading ``file_path``. The body is streamed, not buffered."""
        session = await self._require_session()
        url = f"{self.base_url}/file/bot{self._token}/{file_path}"
        try:
            resp = await session.get(
                url,
                timeout=self._timeout,
                headers={"Accept-Encoding": "identity"},
            )
        except asyncio.TimeoutError as e:
            raise TelegramAPIError(0, "Request timed out", "file") from e
        except aiohttp.ClientError as e:
            raise TelegramAPIError(0, self._redact(str(e) or type(e).__name__), "file") from e

        headers = {
            k: v for k, v in resp.headers.items()
            if k.lower() not in HOP_BY_HOP_HEADERS
        }
        if "Content-Encoding" in resp.headers:
            # aiohttp already decoded the body
            headers = {
                k: v for k, v in headers.items()
                if k.lower() not in ("content-encoding", "content-length")
            }
        async def close() -> None:
            resp.close()

        return FileStream(
            status=resp.status,
            headers=headers,
            chunks=self._iter_body(resp),
            close=close,
        )

    async def _require_session(self) -> aiohttp.ClientSession:
        if not self._session:
            await self.open()
        return self._session

    async def _call(self, method: str, **kwargs) -> Any:
        """POST a Bot API method and return its ``result`` or raise TelegramAPIError."""
        session = await self._require_session()
        url = f"{self.base_url}/bot{self._token}/{method}"
        try:
            async with session.post(url, timeout=self._timeout, **kwargs) as resp:
                try:
                    payload = await resp.json(content_type=None)
                except ValueError as e:
                    raise TelegramAPIError(resp.status, "Non-JSON response", method) from e
                status = resp.status
        except TelegramAPIError:
            raise
        except asyncio.TimeoutError as e:
            raise TelegramAPIError(0, "Request timed out", method) from e
        except aiohttp.ClientError as e:
            raise TelegramAPIError(0, self._redact(str(e) or type(e).__name__), method) from e

        if not isinstance(payload, dict):
            raise TelegramAPIError(status, "Unexpected response body", method)
        if not payload.get("ok"):
            raise TelegramAPIError(
                payload.get("error_code") or status,
                payload.get("description") or "Unknown error",
                method,
            )
        return payload.get("result")

    def _redact(self, text: str) -> str:
        return text.replace(self._token, "<token>")

    @staticmethod
    async def _iter_body(resp: aiohttp.ClientResponse) -> AsyncIterator[bytes]:
        try:
            async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                yield chunk
        finally:
            resp.close()
