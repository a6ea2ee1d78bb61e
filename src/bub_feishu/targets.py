"""Send target normalization."""

from __future__ import annotations

from typing import Literal

ReceiveIdType = Literal["chat_id", "open_id", "union_id", "email", "user_id"]

_CHANNEL_PREFIXES = ("feishu:", "lark:")
_KIND_PREFIXES = ("chat:", "user:", "open_id:")


def normalize_target(raw: str) -> str | None:
    target = raw.strip()
    for prefix in _CHANNEL_PREFIXES:
        if target.lower().startswith(prefix):
            target = target[len(prefix) :].strip()
            break
    for prefix in _KIND_PREFIXES:
        if target.lower().startswith(prefix):
            target = target[len(prefix) :].strip()
            break
    return target or None


def resolve_receive_id_type(receive_id: str) -> ReceiveIdType:
    if receive_id.startswith("oc_"):
        return "chat_id"
    if receive_id.startswith("ou_"):
        return "open_id"
    if receive_id.startswith("on_"):
        return "union_id"
    if "@" in receive_id:
        return "email"
    return "user_id"
