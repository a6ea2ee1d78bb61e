"""Text, card and media message sending."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from loguru import logger

from bub_feishu.errors import InvalidTargetError
from bub_feishu.payloads import ensure_success, response_field
from bub_feishu.runtime import FeishuRuntime
from bub_feishu.targets import normalize_target, resolve_receive_id_type


@dataclass(frozen=True)
class MentionTarget:
    """A user to @-mention at the start of a reply."""

    open_id: str
    name: str


@dataclass(frozen=True)
class SendResult:
    message_id: str
    chat_id: str


def _text_with_mentions(text: str, mentions: list[MentionTarget] | None) -> str:
    if not mentions:
        return text
    prefix = " ".join(f'<at user_id="{m.open_id}">{m.name}</at>' for m in mentions)
    return f"{prefix} {text}"


def _card_with_mentions(text: str, mentions: list[MentionTarget] | None) -> str:
    if not mentions:
        return text
    prefix = " ".join(f"<at id={m.open_id}></at>" for m in mentions)
    return f"{prefix} {text}"


def build_markdown_card(text: str) -> dict[str, Any]:
    return {
        "config": {"wide_screen_mode": True},
        "elements": [{"tag": "markdown", "content": text}],
    }


async def _deliver(
    runtime: FeishuRuntime,
    *,
    to: str,
    msg_type: str,
    content: str,
    action: str,
    reply_to_message_id: str | None,
    account_id: str | None,
) -> SendResult:
    account, client = runtime.client_for(account_id)
    receive_id = normalize_target(to)
    if not receive_id:
        raise InvalidTargetError(to)

    if reply_to_message_id:
        response = await client.reply_message(reply_to_message_id, msg_type, content)
        ensure_success(response, f"{action} reply", require_code=True)
    else:
        receive_id_type = resolve_receive_id_type(receive_id)
        response = await client.create_message(receive_id_type, receive_id, msg_type, content)
        ensure_success(response, f"{action} send", require_code=True)

    data = response_field(response, "data")
    message_id = response_field(data, "message_id") if data is not None else None
    logger.debug(
        "feishu.send.ok account_id={} msg_type={} to={} message_id={}",
        account.account_id,
        msg_type,
        receive_id,
        message_id,
    )
    return SendResult(message_id=message_id or "unknown", chat_id=receive_id)


async def send_message(
    runtime: FeishuRuntime,
    *,
    to: str,
    text: str,
    reply_to_message_id: str | None = None,
    mentions: list[MentionTarget] | None = None,
    account_id: str | None = None,
) -> SendResult:
    content = json.dumps({"text": _text_with_mentions(text, mentions)}, ensure_ascii=False)
    return await _deliver(
        runtime,
        to=to,
        msg_type="text",
        content=content,
        action="message",
        reply_to_message_id=reply_to_message_id,
        account_id=account_id,
    )


async def send_markdown_card(
    runtime: FeishuRuntime,
    *,
    to: str,
    text: str,
    reply_to_message_id: str | None = None,
    mentions: list[MentionTarget] | None = None,
    account_id: str | None = None,
) -> SendResult:
    card = build_markdown_card(_card_with_mentions(text, mentions))
    return await _deliver(
        runtime,
        to=to,
        msg_type="interactive",
        content=json.dumps(card, ensure_ascii=False),
        action="card",
        reply_to_message_id=reply_to_message_id,
        account_id=account_id,
    )


async def send_image(
    runtime: FeishuRuntime,
    *,
    to: str,
    image_key: str,
    reply_to_message_id: str | None = None,
    account_id: str | None = None,
) -> SendResult:
    return await _deliver(
        runtime,
        to=to,
        msg_type="image",
        content=json.dumps({"image_key": image_key}),
        action="image",
        reply_to_message_id=reply_to_message_id,
        account_id=account_id,
    )


async def send_file(
    runtime: FeishuRuntime,
    *,
    to: str,
    file_key: str,
    reply_to_message_id: str | None = None,
    account_id: str | None = None,
) -> SendResult:
    return await _deliver(
        runtime,
        to=to,
        msg_type="file",
        content=json.dumps({"file_key": file_key}),
        action="file",
        reply_to_message_id=reply_to_message_id,
        account_id=account_id,
    )
