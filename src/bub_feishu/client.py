"""Remote client boundary over the lark-oapi SDK."""

from __future__ import annotations

import asyncio
from typing import IO, Any, Protocol

import lark_oapi as lark
from lark_oapi.api.im.v1 import (
    CreateFileRequest,
    CreateFileRequestBody,
    CreateImageRequest,
    CreateImageRequestBody,
    CreateMessageReactionRequest,
    CreateMessageReactionRequestBody,
    CreateMessageRequest,
    CreateMessageRequestBody,
    DeleteMessageReactionRequest,
    Emoji,
    GetImageRequest,
    GetMessageResourceRequest,
    ReplyMessageRequest,
    ReplyMessageRequestBody,
)

from bub_feishu.config import FeishuAccount


class FeishuClient(Protocol):
    """Remote operations the adapter consumes.

    Every method returns an untyped envelope: either a ``{code, msg, data}``
    mapping or, for binary downloads, any object the payload normalizer
    recognizes.
    """

    async def get_image(self, image_key: str) -> Any: ...

    async def get_message_resource(self, message_id: str, file_key: str, resource_type: str) -> Any: ...

    async def create_image(self, image_type: str, image: IO[bytes]) -> Any: ...

    async def create_file(
        self, file_type: str, file_name: str, file: IO[bytes], duration: int | None = None
    ) -> Any: ...

    async def create_message(self, receive_id_type: str, receive_id: str, msg_type: str, content: str) -> Any: ...

    async def reply_message(self, message_id: str, msg_type: str, content: str) -> Any: ...

    async def add_reaction(self, message_id: str, emoji_type: str) -> Any: ...

    async def delete_reaction(self, message_id: str, reaction_id: str) -> Any: ...


class LarkDownload:
    """Binary download handle exposing ``read`` over the SDK file object."""

    def __init__(self, code: int, msg: str, file: IO[bytes] | None, file_name: str | None, content_type: str | None):
        self.code = code
        self.msg = msg
        self.file_name = file_name
        self.content_type = content_type
        self._file = file

    def read(self, size: int = -1) -> bytes:
        if self._file is None:
            return b""
        return self._file.read(size)


def _envelope(response: Any, *fields: str) -> dict[str, Any]:
    data = getattr(response, "data", None)
    return {
        "code": response.code,
        "msg": response.msg,
        "data": {name: getattr(data, name, None) for name in fields} if data is not None else None,
    }


def _download(response: Any) -> LarkDownload:
    headers = getattr(getattr(response, "raw", None), "headers", None) or {}
    content_type = headers.get("Content-Type") or headers.get("content-type")
    return LarkDownload(
        code=response.code,
        msg=response.msg,
        file=getattr(response, "file", None),
        file_name=getattr(response, "file_name", None),
        content_type=content_type,
    )


class LarkClient:
    """``FeishuClient`` backed by a blocking ``lark.Client`` run in worker threads."""

    def __init__(self, client: lark.Client) -> None:
        self._client = client

    @classmethod
    def for_account(cls, account: FeishuAccount) -> LarkClient:
        domain = lark.LARK_DOMAIN if account.config.domain == "lark" else lark.FEISHU_DOMAIN
        client = (
            lark.Client.builder()
            .app_id(account.config.app_id)
            .app_secret(account.config.app_secret)
            .domain(domain)
            .log_level(lark.LogLevel.WARNING)
            .build()
        )
        return cls(client)

    async def get_image(self, image_key: str) -> Any:
        request = GetImageRequest.builder().image_key(image_key).build()
        response = await asyncio.to_thread(self._client.im.v1.image.get, request)
        return _download(response)

    async def get_message_resource(self, message_id: str, file_key: str, resource_type: str) -> Any:
        request = (
            GetMessageResourceRequest.builder().message_id(message_id).file_key(file_key).type(resource_type).build()
        )
        response = await asyncio.to_thread(self._client.im.v1.message_resource.get, request)
        return _download(response)

    async def create_image(self, image_type: str, image: IO[bytes]) -> Any:
        request = (
            CreateImageRequest.builder()
            .request_body(CreateImageRequestBody.builder().image_type(image_type).image(image).build())
            .build()
        )
        response = await asyncio.to_thread(self._client.im.v1.image.create, request)
        return _envelope(response, "image_key")

    async def create_file(self, file_type: str, file_name: str, file: IO[bytes], duration: int | None = None) -> Any:
        body = CreateFileRequestBody.builder().file_type(file_type).file_name(file_name).file(file)
        if duration is not None:
            body = body.duration(duration)
        request = CreateFileRequest.builder().request_body(body.build()).build()
        response = await asyncio.to_thread(self._client.im.v1.file.create, request)
        return _envelope(response, "file_key")

    async def create_message(self, receive_id_type: str, receive_id: str, msg_type: str, content: str) -> Any:
        request = (
            CreateMessageRequest.builder()
            .receive_id_type(receive_id_type)
            .request_body(
                CreateMessageRequestBody.builder().receive_id(receive_id).msg_type(msg_type).content(content).build()
            )
            .build()
        )
        response = await asyncio.to_thread(self._client.im.v1.message.create, request)
        return _envelope(response, "message_id", "chat_id")

    async def reply_message(self, message_id: str, msg_type: str, content: str) -> Any:
        request = (
            ReplyMessageRequest.builder()
            .message_id(message_id)
            .request_body(ReplyMessageRequestBody.builder().msg_type(msg_type).content(content).build())
            .build()
        )
        response = await asyncio.to_thread(self._client.im.v1.message.reply, request)
        return _envelope(response, "message_id", "chat_id")

    async def add_reaction(self, message_id: str, emoji_type: str) -> Any:
        request = (
            CreateMessageReactionRequest.builder()
            .message_id(message_id)
            .request_body(
                CreateMessageReactionRequestBody.builder()
                .reaction_type(Emoji.builder().emoji_type(emoji_type).build())
                .build()
            )
            .build()
        )
        response = await asyncio.to_thread(self._client.im.v1.message_reaction.create, request)
        return _envelope(response, "reaction_id")

    async def delete_reaction(self, message_id: str, reaction_id: str) -> Any:
        request = DeleteMessageReactionRequest.builder().message_id(message_id).reaction_id(reaction_id).build()
        response = await asyncio.to_thread(self._client.im.v1.message_reaction.delete, request)
        return _envelope(response, "reaction_id")
