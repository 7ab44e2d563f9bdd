"""Upload and download flows between HTTP clients, Telegram and the link store.

Batches are processed sequentially and stop at the first failing file. Files
stored before the failure keep their links; nothing is rolled back.
"""
import logging
from typing import Optional
from urllib.parse import quote

from starlette.datastructures import UploadFile

from filerelay.config import Settings
from filerelay.errors import InvalidUploadError, LinkNotFoundError, UpstreamError
from filerelay.services.kv_store import KeyValueStore
from filerelay.services.public_id import generate_public_id, split_hash
from filerelay.services.telegram_client import FileStream, TelegramAPIError, TelegramClient

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=31536000"  # one year

# Bad Request descriptions that blame the document rather than our config
REJECTED_FILE_MARKERS = ("file is too big", "file too large", "file must be non-empty")

# Set again by our own server or replaced below
DROPPED_HEADERS = frozenset({"content-disposition", "cache-control", "date", "server"})


class FileRelayService:
    """Stores uploads in Telegram and serves them back by public id."""

    def __init__(self, client: TelegramClient, store: KeyValueStore, settings: Settings):
        self.client = client
        self.store = store
        self.max_file_size = settings.MAX_FILE_SIZE
        self.max_id_attempts = max(1, settings.PUBLIC_ID_MAX_ATTEMPTS)

    async def upload(self, files: list[UploadFile], origin: str) -> list[dict]:
        """Store every file and return one ``{hash, name, url, size}`` per file.

        The whole batch is validated before anything is sent to Telegram.
        """
        if not files:
            raise InvalidUploadError("No valid file uploaded")
        for upload in files:
            size = await _file_size(upload)
            if size > self.max_file_size:
                limit_mb = self.max_file_size // (1024 * 1024)
                logger.info(f"Rejected {upload.filename!r}: {size} bytes over limit")
                raise InvalidUploadError(f"File too large. Maximum size is {limit_mb} MB")

        results = []
        for upload in files:
            results.append(await self._store_one(upload, origin))
        return results

    async def download(self, public_id: str) -> FileStream:
        """Open the stored file behind ``public_id`` for streaming."""
        file_id = await self.store.get(public_id)
        if not file_id:
            raise LinkNotFoundError()

        try:
            file_path = await self.client.get_file(file_id)
            stream = await self.client.open_file(file_path)
        except TelegramAPIError as e:
            logger.error(f"Download of {public_id!r} failed: {e}")
            raise UpstreamError("Download failed") from e

        if stream.status >= 400:
            await stream.aclose()
            logger.error(f"Download of {public_id!r} failed: file endpoint returned {stream.status}")
            raise UpstreamError("Download failed")

        headers = {
            k: v for k, v in stream.headers.items()
            if k.lower() not in DROPPED_HEADERS
        }
        headers["Content-Disposition"] = content_disposition(public_id)
        headers["Cache-Control"] = CACHE_CONTROL
        stream.headers = headers
        return stream

    async def _store_one(self, upload: UploadFile, origin: str) -> dict:
        name = upload.filename or "file"
        public_id = await self._allocate_public_id(name)
        data = await upload.read()

        try:
            document = await self.client.send_document(data, name, upload.content_type)
        except TelegramAPIError as e:
            logger.error(f"Upload of {name!r} failed: {e}")
            if is_file_rejection(e):
                raise InvalidUploadError("File rejected by storage provider") from e
            raise UpstreamError("Upload failed") from e

        await self.store.put(public_id, document.file_id)
        size = document.file_size if document.file_size is not None else len(data)
        logger.info(f"Stored {name!r} as {public_id} ({size} bytes)")
        return {
            "hash": split_hash(public_id),
            "name": name,
            "url": f"{origin}/f/{quote(public_id)}",
            "size": size,
        }

    async def _allocate_public_id(self, filename: str) -> str:
        for attempt in range(1, self.max_id_attempts + 1):
            public_id = generate_public_id(filename)
            if not await self.store.exists(public_id):
                return public_id
            logger.warning(f"Public id collision on {public_id} (attempt {attempt})")
        raise UpstreamError("Could not allocate a file identifier")


def is_file_rejection(error: TelegramAPIError) -> bool:
    """True when Telegram refused the document itself, not the bot or chat."""
    if error.error_code == 413:
        return True
    description = error.description.lower()
    return error.error_code == 400 and any(m in description for m in REJECTED_FILE_MARKERS)


async def _file_size(upload: UploadFile) -> int:
    size: Optional[int] = upload.size
    if size is None:
        size = len(await upload.read())
        await upload.seek(0)
    return size


def content_disposition(filename: str) -> str:
    safe = filename.replace("\\", "_").replace('"', "_")
    try:
        safe.encode("latin-1")
    except UnicodeEncodeError:
        ascii_name = safe.encode("ascii", "replace").decode("ascii").replace("?", "_")
        return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
    return f'attachment; filename="{safe}"'
