"""Feishu channel adapter: media transfer and reply dispatch."""

from bub_feishu.config import FeishuAccount, FeishuAccountConfig, FeishuSettings, resolve_account
from bub_feishu.dispatcher import FeishuReplyDispatcher, ReplyPayload, dispatch_fragments
from bub_feishu.media import (
    DownloadResult,
    detect_file_type,
    download_image,
    download_message_resource,
    send_media,
    upload_file,
    upload_image,
)
from bub_feishu.media_tokens import extract_media_from_text
from bub_feishu.payloads import extract_buffer
from bub_feishu.runtime import FeishuRuntime
from bub_feishu.send import MentionTarget, SendResult, send_file, send_image, send_markdown_card, send_message

__all__ = [
    "DownloadResult",
    "FeishuAccount",
    "FeishuAccountConfig",
    "FeishuReplyDispatcher",
    "FeishuRuntime",
    "FeishuSettings",
    "MentionTarget",
    "ReplyPayload",
    "SendResult",
    "detect_file_type",
    "dispatch_fragments",
    "download_image",
    "download_message_resource",
    "extract_buffer",
    "extract_media_from_text",
    "resolve_account",
    "send_file",
    "send_image",
    "send_markdown_card",
    "send_media",
    "send_message",
    "upload_file",
    "upload_image",
]
