"""Media download, upload and send operations."""

from __future__ import annotations

import asyncio
import contextlib
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import IO, Literal
from urllib.parse import urlsplit
from urllib.request import url2pathname

from loguru import logger

from bub_feishu.errors import FetchFailedError, LocalFileUnreadableError, MissingResultKeyError, NoMediaSourceError
from bub_feishu.payloads import ensure_success, extract_buffer, response_field
from bub_feishu.runtime import FeishuRuntime
from bub_feishu.send import SendResult, send_file, send_image
from bub_feishu.tempfiles import TempPathBroker

FileType = Literal["opus", "mp4", "pdf", "doc", "xls", "ppt", "stream"]
ImageType = Literal["message", "avatar"]
ResourceType = Literal["image", "file"]

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".ico", ".tiff"})

_FILE_TYPES: dict[str, FileType] = {
    ".opus": "opus",
    ".ogg": "opus",
    ".mp4": "mp4",
    ".mov": "mp4",
    ".avi": "mp4",
    ".pdf": "pdf",
    ".doc": "doc",
    ".docx": "doc",
    ".xls": "xls",
    ".xlsx": "xls",
    ".ppt": "ppt",
    ".pptx": "ppt",
}

_DRIVE_PREFIX = re.compile(r"^[a-zA-Z]:")


@dataclass(frozen=True)
class DownloadResult:
    buffer: bytes
    content_type: str | None = None
    file_name: str | None = None


def detect_file_type(file_name: str) -> FileType:
    """Map a file name's extension to the upload file type tag."""
    return _FILE_TYPES.get(_extension(file_name), "stream")


def is_image_name(file_name: str) -> bool:
    return _extension(file_name) in IMAGE_EXTENSIONS


def is_local_path(url_or_path: str) -> bool:
    if url_or_path.startswith(("/", "~")) or _DRIVE_PREFIX.match(url_or_path):
        return True
    scheme = urlsplit(url_or_path).scheme
    return not scheme or scheme == "file"


def _extension(file_name: str) -> str:
    return PurePosixPath(file_name.replace("\\", "/")).suffix.lower()


async def download_image(runtime: FeishuRuntime, *, image_key: str, account_id: str | None = None) -> DownloadResult:
    """Download an image sent in a message by its image key."""
    _, client = runtime.client_for(account_id)
    response = await client.get_image(image_key)
    ensure_success(response, "image download")
    buffer = await extract_buffer(response, "image download", runtime.broker)
    return DownloadResult(buffer=buffer, content_type=response_field(response, "content_type"))


async def download_message_resource(
    runtime: FeishuRuntime,
    *,
    message_id: str,
    file_key: str,
    resource_type: ResourceType,
    account_id: str | None = None,
) -> DownloadResult:
    """Download a file, image, audio or video attached to a message."""
    _, client = runtime.client_for(account_id)
    response = await client.get_message_resource(message_id, file_key, resource_type)
    ensure_success(response, "message resource download")
    buffer = await extract_buffer(response, "resource download", runtime.broker)
    return DownloadResult(
        buffer=buffer,
        content_type=response_field(response, "content_type"),
        file_name=response_field(response, "file_name"),
    )


@contextlib.asynccontextmanager
async def _open_upload(
    broker: TempPathBroker, source: bytes | str | Path, name: str
) -> AsyncIterator[IO[bytes]]:
    # Multipart encoding needs a real file to size the part; an in-memory
    # stream uploads as zero bytes. Buffers are spilled to a scratch file.
    if isinstance(source, (str, Path)):
        handle = await asyncio.to_thread(open, source, "rb")
        try:
            yield handle
        finally:
            handle.close()
        return
    with broker.scratch_path("feishu_upload", name) as path:
        await asyncio.to_thread(path.write_bytes, source)
        handle = await asyncio.to_thread(path.open, "rb")
        try:
            yield handle
        finally:
            handle.close()


def _result_key(response: object, key: str) -> str | None:
    value = response_field(response, key)
    if value:
        return value
    data = response_field(response, "data")
    if data is None:
        return None
    return response_field(data, key) or None


async def upload_image(
    runtime: FeishuRuntime,
    *,
    image: bytes | str | Path,
    image_type: ImageType = "message",
    account_id: str | None = None,
) -> str:
    """Upload an image and return its image key."""
    account, client = runtime.client_for(account_id)
    async with _open_upload(runtime.broker, image, "img") as handle:
        response = await client.create_image(image_type, handle)
    ensure_success(response, "image upload")
    image_key = _result_key(response, "image_key")
    if not image_key:
        raise MissingResultKeyError("image upload", "image_key")
    logger.info("feishu.media.upload_image ok account_id={} image_key={}", account.account_id, image_key)
    return image_key


async def upload_file(
    runtime: FeishuRuntime,
    *,
    file: bytes | str | Path,
    file_name: str,
    file_type: FileType,
    duration: int | None = None,
    account_id: str | None = None,
) -> str:
    """Upload a file and return its file key.

    ``duration`` is in milliseconds and only meaningful for audio and video.
    """
    account, client = runtime.client_for(account_id)
    async with _open_upload(runtime.broker, file, file_name) as handle:
        response = await client.create_file(file_type, file_name, handle, duration)
    ensure_success(response, "file upload")
    file_key = _result_key(response, "file_key")
    if not file_key:
        raise MissingResultKeyError("file upload", "file_key")
    logger.info(
        "feishu.media.upload_file ok account_id={} file_type={} file_key={}", account.account_id, file_type, file_key
    )
    return file_key


def _local_file_path(url_or_path: str) -> Path:
    if url_or_path.startswith("~"):
        return Path(str(Path.home()) + url_or_path[1:])
    if url_or_path.startswith("file:"):
        return Path(url2pathname(urlsplit(url_or_path).path))
    return Path(url_or_path)


async def _read_local(url_or_path: str) -> tuple[bytes, Path]:
    path = _local_file_path(url_or_path)
    try:
        return await asyncio.to_thread(path.read_bytes), path
    except OSError:
        raise LocalFileUnreadableError(str(path)) from None


async def _fetch_remote(runtime: FeishuRuntime, url: str) -> bytes:
    async with runtime.http_client() as http:
        response = await http.get(url)
    if not response.is_success:
        raise FetchFailedError(response.status_code)
    return response.content


async def send_media(
    runtime: FeishuRuntime,
    *,
    to: str,
    media_url: str | None = None,
    media_buffer: bytes | None = None,
    file_name: str | None = None,
    reply_to_message_id: str | None = None,
    account_id: str | None = None,
) -> SendResult:
    """Upload and send an image or file from a buffer, local path or URL."""
    if media_buffer is not None:
        buffer = media_buffer
        name = file_name if file_name is not None else "file"
    elif media_url:
        if is_local_path(media_url):
            buffer, path = await _read_local(media_url)
            name = file_name if file_name is not None else path.name
        else:
            buffer = await _fetch_remote(runtime, media_url)
            url_name = PurePosixPath(urlsplit(media_url).path).name or "file"
            name = file_name if file_name is not None else url_name
    else:
        raise NoMediaSourceError()

    if is_image_name(name):
        image_key = await upload_image(runtime, image=buffer, account_id=account_id)
        return await send_image(
            runtime, to=to, image_key=image_key, reply_to_message_id=reply_to_message_id, account_id=account_id
        )

    file_key = await upload_file(
        runtime, file=buffer, file_name=name, file_type=detect_file_type(name), account_id=account_id
    )
    return await send_file(
        runtime, to=to, file_key=file_key, reply_to_message_id=reply_to_message_id, account_id=account_id
    )
