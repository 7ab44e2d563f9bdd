"""TelegramClient against a local aiohttp server speaking the Bot API shape."""
import asyncio

import pytest
from aiohttp import test_utils, web

from filerelay.services.telegram_client import TelegramAPIError, TelegramClient

TOKEN = "123456:secret-token"
CHAT_ID = "-1001234567890"
CONTENT = b"%PDF-1.7\n" + b"0" * 200_000


def _bot_api():
    stored = {}

    async def send_document(request):
        form = await request.post()
        if form.get("chat_id") != CHAT_ID:
            return web.json_response(
                {"ok": False, "error_code": 400, "description": "Bad Request: chat not found"},
                status=400,
            )
        document = form["document"]
        data = document.file.read()
        file_id = f"BQAC{len(stored) + 1}"
        stored[file_id] = (data, document.content_type)
        return web.json_response({
            "ok": True,
            "result": {
                "message_id": 1,
                "document": {
                    "file_id": file_id,
                    "file_unique_id": "AgAD",
                    "file_name": document.filename,
                    "mime_type": document.content_type,
                    "file_size": len(data),
                },
            },
        })

    async def get_file(request):
        body = await request.json()
        file_id = body.get("file_id")
        if file_id == "html":
            return web.Response(text="<html>bad gateway</html>", status=502, content_type="text/html")
        if file_id not in stored:
            return web.json_response(
                {"ok": False, "error_code": 400, "description": "Bad Request: invalid file_id"},
                status=400,
            )
        return web.json_response({
            "ok": True,
            "result": {"file_id": file_id, "file_path": f"documents/{file_id}.pdf"},
        })

    async def download(request):
        file_id = request.match_info["path"].rsplit("/", 1)[-1].split(".")[0]
        if file_id not in stored:
            return web.Response(status=404, text="Not Found")
        data, content_type = stored[file_id]
        return web.Response(body=data, content_type=content_type)

    app = web.Application()
    app.router.add_post(f"/bot{TOKEN}/sendDocument", send_document)
    app.router.add_post(f"/bot{TOKEN}/getFile", get_file)
    app.router.add_get(f"/file/bot{TOKEN}/{{path:.*}}", download)
    return app


def _run(scenario):
    async def main():
        server = test_utils.TestServer(_bot_api())
        await server.start_server()
        try:
            base_url = f"http://{server.host}:{server.port}"
            async with TelegramClient(TOKEN, CHAT_ID, base_url=base_url) as client:
                return await scenario(client)
        finally:
            await server.close()

    return asyncio.run(main())


async def _read_all(stream):
    try:
        return b"".join([chunk async for chunk in stream.chunks])
    finally:
        await stream.aclose()


def test_send_resolve_and_stream():
    async def scenario(client):
        document = await client.send_document(CONTENT, "spec.pdf", "application/pdf")
        file_path = await client.get_file(document.file_id)
        stream = await client.open_file(file_path)
        return document, file_path, stream.status, stream.headers, await _read_all(stream)

    document, file_path, status, headers, body = _run(scenario)

    assert document.file_id == "BQAC1"
    assert document.file_size == len(CONTENT)
    assert document.file_name == "spec.pdf"
    assert file_path == "documents/BQAC1.pdf"
    assert status == 200
    assert headers["Content-Type"] == "application/pdf"
    assert headers["Content-Length"] == str(len(CONTENT))
    assert body == CONTENT


def test_api_error_carries_code_and_description():
    async def scenario(client):
        with pytest.raises(TelegramAPIError) as excinfo:
            await client.get_file("unknown")
        return excinfo.value

    error = _run(scenario)

    assert error.error_code == 400
    assert error.description == "Bad Request: invalid file_id"
    assert error.method == "getFile"
    assert TOKEN not in str(error)


def test_non_json_response():
    async def scenario(client):
        with pytest.raises(TelegramAPIError) as excinfo:
            await client.get_file("html")
        return excinfo.value

    error = _run(scenario)

    assert error.error_code == 502
    assert error.description == "Non-JSON response"


def test_missing_file_status_is_reported():
    async def scenario(client):
        stream = await client.open_file("documents/BQAC99.pdf")
        await _read_all(stream)
        return stream.status

    assert _run(scenario) == 404


def test_connection_error_hides_token():
    async def scenario():
        async with TelegramClient(TOKEN, CHAT_ID, base_url="http://127.0.0.1:1") as client:
            with pytest.raises(TelegramAPIError) as excinfo:
                await client.get_file("anything")
            return excinfo.value

    error = asyncio.run(scenario())

    assert error.error_code == 0
    assert TOKEN not in str(error)


def test_requires_credentials():
    with pytest.raises(ValueError, match="TELEGRAM_BOT_TOKEN"):
        TelegramClient("", CHAT_ID)
    with pytest.raises(ValueError, match="TELEGRAM_CHAT_ID"):
        TelegramClient(TOKEN, "")
