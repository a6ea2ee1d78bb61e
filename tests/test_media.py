from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import pytest

from bub_feishu.config import FeishuSettings
from bub_feishu.errors import (
    AccountNotConfiguredError,
    FetchFailedError,
    InvalidTargetError,
    LocalFileUnreadableError,
    MissingResultKeyError,
    NoMediaSourceError,
    RemoteOperationError,
)
from bub_feishu.media import (
    detect_file_type,
    download_image,
    download_message_resource,
    is_image_name,
    is_local_path,
    send_media,
    upload_file,
    upload_image,
)
from bub_feishu.runtime import FeishuRuntime
from bub_feishu.tempfiles import TempPathBroker

if TYPE_CHECKING:
    from tests.conftest import FakeClient


def _runtime_with_http(runtime: FeishuRuntime, handler) -> FeishuRuntime:
    runtime._http_client_factory = lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return runtime


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("clip.MOV", "mp4"),
        ("movie.avi", "mp4"),
        ("voice.ogg", "opus"),
        ("voice.opus", "opus"),
        ("notes.docx", "doc"),
        ("sheet.XLSX", "xls"),
        ("deck.ppt", "ppt"),
        ("paper.pdf", "pdf"),
        ("archive.zip", "stream"),
        ("README", "stream"),
    ],
)
def test_detect_file_type(name: str, expected: str) -> None:
    assert detect_file_type(name) == expected


def test_is_image_name() -> None:
    assert is_image_name("photo.PNG")
    assert is_image_name("scan.tiff")
    assert not is_image_name("report.pdf")
    assert not is_image_name("photo.svg")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("/tmp/a.png", True),
        ("~/a.png", True),
        ("C:\\files\\a.png", True),
        ("file:///tmp/a.png", True),
        ("relative/a.png", True),
        ("https://example.com/a.png", False),
        ("http://example.com/a.png", False),
    ],
)
def test_is_local_path(value: str, expected: bool) -> None:
    assert is_local_path(value) is expected


@pytest.mark.asyncio
async def test_download_image_returns_buffer(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    fake_client.responses["get_image"] = {"code": 0, "data": b"\x89PNG"}

    result = await download_image(runtime, image_key="img_1")

    assert result.buffer == b"\x89PNG"
    assert fake_client.calls == [("get_image", {"image_key": "img_1"})]


@pytest.mark.asyncio
async def test_download_image_raises_on_error_code(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    fake_client.responses["get_image"] = {"code": 234001, "msg": "invalid image key"}

    with pytest.raises(RemoteOperationError, match="image download failed: invalid image key"):
        await download_image(runtime, image_key="img_1")


@pytest.mark.asyncio
async def test_download_message_resource_reports_metadata(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    class Handle:
        code = 0
        file_name = "report.pdf"
        content_type = "application/pdf"

        def __init__(self) -> None:
            self._chunks = [b"%PDF", b"-1.7"]

        def read(self, _size: int = -1) -> bytes:
            return self._chunks.pop(0) if self._chunks else b""

    fake_client.responses["get_message_resource"] = Handle

    result = await download_message_resource(runtime, message_id="om_1", file_key="file_1", resource_type="file")

    assert result.buffer == b"%PDF-1.7"
    assert result.file_name == "report.pdf"
    assert result.content_type == "application/pdf"
    assert fake_client.calls == [
        ("get_message_resource", {"message_id": "om_1", "file_key": "file_1", "type": "file"})
    ]


@pytest.mark.asyncio
async def test_operations_require_configured_account(fake_client: FakeClient, scratch_dir: Path) -> None:
    runtime = FeishuRuntime(
        FeishuSettings(app_id="", app_secret=""),
        client_factory=lambda _account: fake_client,
        broker=TempPathBroker(scratch_dir),
    )

    with pytest.raises(AccountNotConfiguredError, match='"default"'):
        await download_image(runtime, image_key="img_1")
    with pytest.raises(AccountNotConfiguredError, match='"other"'):
        await upload_image(runtime, image=b"x", account_id="other")
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_upload_image_buffer_streams_from_scratch_file(
    runtime: FeishuRuntime, fake_client: FakeClient, scratch_dir: Path
) -> None:
    image_key = await upload_image(runtime, image=b"pixels")

    assert image_key == "img_1"
    assert fake_client.uploaded[0]["content"] == b"pixels"
    assert Path(fake_client.uploaded[0]["name"]).parent == scratch_dir
    assert list(scratch_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_buffer_spills_off_the_event_loop(
    runtime: FeishuRuntime, fake_client: FakeClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    offloaded: list[str] = []
    original = asyncio.to_thread

    async def recording_to_thread(func, /, *args, **kwargs):
        offloaded.append(getattr(func, "__name__", repr(func)))
        return await original(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)
    await upload_file(runtime, file=b"report", file_name="r.pdf", file_type="pdf")

    assert offloaded == ["write_bytes", "open"]
    assert fake_client.uploaded[0]["content"] == b"report"


@pytest.mark.asyncio
async def test_upload_image_from_path_does_not_use_scratch(
    runtime: FeishuRuntime, fake_client: FakeClient, tmp_path: Path, scratch_dir: Path
) -> None:
    source = tmp_path / "a.png"
    source.write_bytes(b"png-bytes")

    await upload_image(runtime, image=str(source), image_type="avatar")

    assert fake_client.calls == [("create_image", {"image_type": "avatar"})]
    assert fake_client.uploaded[0] == {"name": str(source), "content": b"png-bytes"}


@pytest.mark.asyncio
async def test_upload_image_accepts_top_level_key(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    fake_client.responses["create_image"] = {"image_key": "img_top"}
    assert await upload_image(runtime, image=b"x") == "img_top"


@pytest.mark.asyncio
async def test_upload_image_without_key_fails(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    fake_client.responses["create_image"] = {"code": 0, "data": {}}
    with pytest.raises(MissingResultKeyError, match="no image_key returned"):
        await upload_image(runtime, image=b"x")


@pytest.mark.asyncio
async def test_upload_file_cleans_scratch_on_remote_failure(
    runtime: FeishuRuntime, fake_client: FakeClient, scratch_dir: Path
) -> None:
    fake_client.responses["create_file"] = {"code": 1, "msg": "too large"}

    with pytest.raises(RemoteOperationError, match="file upload failed: too large"):
        await upload_file(runtime, file=b"data", file_name="../big.bin", file_type="stream")
    assert list(scratch_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_file_cleans_scratch_when_client_raises(
    runtime: FeishuRuntime, fake_client: FakeClient, scratch_dir: Path
) -> None:
    fake_client.responses["create_file"] = ConnectionError("reset")

    with pytest.raises(ConnectionError):
        await upload_file(runtime, file=b"data", file_name="a.bin", file_type="stream")
    assert list(scratch_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_file_forwards_duration(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    file_key = await upload_file(runtime, file=b"data", file_name="clip.mp4", file_type="mp4", duration=1500)

    assert file_key == "file_1"
    assert fake_client.calls == [("create_file", {"file_type": "mp4", "file_name": "clip.mp4", "duration": 1500})]


@pytest.mark.asyncio
async def test_send_media_buffer_routes_image(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    result = await send_media(runtime, to="oc_chat", media_buffer=b"img", file_name="photo.PNG")

    assert fake_client.names() == ["create_image", "create_message"]
    message = fake_client.calls[1][1]
    assert message["receive_id_type"] == "chat_id"
    assert message["msg_type"] == "image"
    assert json.loads(message["content"]) == {"image_key": "img_1"}
    assert result.chat_id == "oc_chat"
    assert result.message_id == "om_2"


@pytest.mark.asyncio
async def test_send_media_buffer_defaults_to_file(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    await send_media(runtime, to="ou_user", media_buffer=b"data")

    assert fake_client.names() == ["create_file", "create_message"]
    assert fake_client.calls[0][1] == {"file_type": "stream", "file_name": "file", "duration": None}
    assert fake_client.calls[1][1]["receive_id_type"] == "open_id"
    assert fake_client.calls[1][1]["msg_type"] == "file"


@pytest.mark.asyncio
async def test_send_media_uses_empty_buffer_over_url(
    runtime: FeishuRuntime, fake_client: FakeClient, scratch_dir: Path
) -> None:
    await send_media(
        runtime,
        to="oc_chat",
        media_buffer=b"",
        media_url="https://cdn.example/other.png",
        file_name="empty.txt",
    )

    assert fake_client.names() == ["create_file", "create_message"]
    assert fake_client.calls[0][1] == {"file_type": "stream", "file_name": "empty.txt", "duration": None}
    assert fake_client.uploaded[0]["content"] == b""
    assert list(scratch_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_send_media_local_path_routes_file(
    runtime: FeishuRuntime, fake_client: FakeClient, tmp_path: Path
) -> None:
    source = tmp_path / "report.pdf"
    source.write_bytes(b"%PDF")

    await send_media(runtime, to="oc_chat", media_url=str(source), reply_to_message_id="om_root")

    assert fake_client.names() == ["create_file", "reply_message"]
    assert fake_client.calls[0][1]["file_type"] == "pdf"
    assert fake_client.calls[0][1]["file_name"] == "report.pdf"
    assert fake_client.uploaded[0]["content"] == b"%PDF"
    assert fake_client.calls[1][1]["message_id"] == "om_root"


@pytest.mark.asyncio
async def test_send_media_expands_home(
    runtime: FeishuRuntime, fake_client: FakeClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    (tmp_path / "cat.jpg").write_bytes(b"meow")

    await send_media(runtime, to="oc_chat", media_url="~/cat.jpg")

    assert fake_client.names() == ["create_image", "create_message"]
    assert fake_client.uploaded[0]["content"] == b"meow"


@pytest.mark.asyncio
async def test_send_media_file_url(runtime: FeishuRuntime, fake_client: FakeClient, tmp_path: Path) -> None:
    source = tmp_path / "notes.docx"
    source.write_bytes(b"doc")

    await send_media(runtime, to="oc_chat", media_url=source.as_uri())

    assert fake_client.calls[0][1]["file_type"] == "doc"


@pytest.mark.asyncio
async def test_send_media_missing_local_file(runtime: FeishuRuntime, fake_client: FakeClient, tmp_path: Path) -> None:
    missing = tmp_path / "missing.png"

    with pytest.raises(LocalFileUnreadableError, match="missing.png") as excinfo:
        await send_media(runtime, to="oc_chat", media_url=str(missing))
    assert excinfo.value.__cause__ is None
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_send_media_remote_url(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, content=b"gif-bytes")

    _runtime_with_http(runtime, handler)

    await send_media(runtime, to="oc_chat", media_url="https://cdn.example.com/media/anim.gif?x=1")

    assert requested == ["https://cdn.example.com/media/anim.gif?x=1"]
    assert fake_client.names() == ["create_image", "create_message"]
    assert fake_client.uploaded[0]["content"] == b"gif-bytes"


@pytest.mark.asyncio
async def test_send_media_remote_url_without_name(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    _runtime_with_http(runtime, lambda _request: httpx.Response(200, content=b"blob"))

    await send_media(runtime, to="oc_chat", media_url="https://cdn.example.com/")

    assert fake_client.calls[0][1]["file_name"] == "file"


@pytest.mark.asyncio
async def test_send_media_explicit_name_overrides_url(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    _runtime_with_http(runtime, lambda _request: httpx.Response(200, content=b"blob"))

    await send_media(runtime, to="oc_chat", media_url="https://cdn.example.com/download", file_name="chart.png")

    assert fake_client.names() == ["create_image", "create_message"]


@pytest.mark.asyncio
async def test_send_media_fetch_failure(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    _runtime_with_http(runtime, lambda _request: httpx.Response(404))

    with pytest.raises(FetchFailedError, match="404") as excinfo:
        await send_media(runtime, to="oc_chat", media_url="https://cdn.example.com/a.png")
    assert excinfo.value.status == 404
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_send_media_requires_source(runtime: FeishuRuntime) -> None:
    with pytest.raises(NoMediaSourceError):
        await send_media(runtime, to="oc_chat")


@pytest.mark.asyncio
async def test_send_media_rejects_empty_target(runtime: FeishuRuntime, fake_client: FakeClient) -> None:
    with pytest.raises(InvalidTargetError):
        await send_media(runtime, to="feishu:  ", media_buffer=b"x", file_name="a.png")
    assert fake_client.names() == ["create_image"]
