"""Normalize the binary response shapes returned by SDK operations.

Remote calls hand back loosely typed envelopes. ``parse_payload`` inspects a
response once, in a fixed priority order, and turns it into one of a small set
of payload variants; ``read_payload`` drains a variant into ``bytes``. The rest
of the adapter only ever sees the resulting buffer.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from bub_feishu.errors import RemoteOperationError, UnrecognizedResponseShapeError
from bub_feishu.tempfiles import TempPathBroker

READ_CHUNK_SIZE = 64 * 1024

_BINARY_BLOCK_TYPES = (bytearray, memoryview)


@dataclass(frozen=True)
class BufferPayload:
    """Bytes already in memory."""

    data: bytes


@dataclass(frozen=True)
class StreamAccessorPayload:
    """A callable that opens a readable stream of chunks."""

    open_stream: Callable[[], Any]


@dataclass(frozen=True)
class SaveToPathPayload:
    """A callable that writes the content to a filesystem path."""

    save: Callable[[str], Any]


@dataclass(frozen=True)
class ChunkStreamPayload:
    """An async iterable of chunks or an object with a ``read`` method."""

    source: Any


type ResponsePayload = BufferPayload | StreamAccessorPayload | SaveToPathPayload | ChunkStreamPayload


def response_field(response: Any, name: str) -> Any:
    """Read a field from a mapping or attribute-style envelope."""
    if isinstance(response, Mapping):
        return response.get(name)
    return getattr(response, name, None)


def ensure_success(response: Any, action: str, *, require_code: bool = False) -> None:
    """Fail on an explicit nonzero ``code``.

    A missing code counts as success unless ``require_code`` is set.
    """
    code = response_field(response, "code")
    if code is None and not require_code:
        return
    if code != 0:
        raise RemoteOperationError(action, code, response_field(response, "msg") or None)


def parse_payload(response: Any, context: str) -> ResponsePayload:
    if isinstance(response, bytes):
        return BufferPayload(response)
    if isinstance(response, _BINARY_BLOCK_TYPES):
        return BufferPayload(bytes(response))

    data = response_field(response, "data")
    if isinstance(data, bytes):
        return BufferPayload(data)
    if isinstance(data, _BINARY_BLOCK_TYPES):
        return BufferPayload(bytes(data))

    open_stream = getattr(response, "get_readable_stream", None)
    if callable(open_stream):
        return StreamAccessorPayload(open_stream)

    save = getattr(response, "write_file", None)
    if callable(save):
        return SaveToPathPayload(save)

    if hasattr(response, "__aiter__") or callable(getattr(response, "read", None)):
        return ChunkStreamPayload(response)

    raise UnrecognizedResponseShapeError(context)


async def read_payload(payload: ResponsePayload, context: str, broker: TempPathBroker) -> bytes:
    if isinstance(payload, BufferPayload):
        return payload.data
    if isinstance(payload, StreamAccessorPayload):
        stream = await _maybe_await(payload.open_stream())
        return await _drain(stream)
    if isinstance(payload, SaveToPathPayload):
        with broker.scratch_path("feishu_dl", context) as path:
            await _maybe_await(payload.save(str(path)))
            return await asyncio.to_thread(path.read_bytes)
    return await _drain(payload.source)


async def extract_buffer(response: Any, context: str, broker: TempPathBroker) -> bytes:
    """Reduce any recognized response shape to one exact byte buffer."""
    return await read_payload(parse_payload(response, context), context, broker)


def coerce_chunk(chunk: Any) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    if isinstance(chunk, int):
        raise TypeError(f"stream chunk must be bytes-like, got {type(chunk).__name__}")
    return bytes(chunk)


async def _drain(stream: Any) -> bytes:
    chunks: list[bytes] = []
    if hasattr(stream, "__aiter__"):
        async for chunk in stream:
            chunks.append(coerce_chunk(chunk))
    elif callable(getattr(stream, "read", None)):
        while True:
            chunk = await _maybe_await(stream.read(READ_CHUNK_SIZE))
            if not chunk:
                break
            chunks.append(coerce_chunk(chunk))
    else:
        for chunk in stream:
            chunks.append(coerce_chunk(chunk))
    return b"".join(chunks)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
