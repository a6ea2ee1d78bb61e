"""Command line entry point for the Feishu adapter."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Annotated, Any

import typer

from bub_feishu.config import FeishuSettings
from bub_feishu.dispatcher import FeishuReplyDispatcher, ReplyPayload, dispatch_fragments
from bub_feishu.errors import FeishuError
from bub_feishu.logging_utils import configure_logging
from bub_feishu.media import download_image, download_message_resource, send_media
from bub_feishu.runtime import FeishuRuntime
from bub_feishu.send import send_message

app = typer.Typer(name="bub-feishu", help="Send and fetch Feishu messages and media", add_completion=False)

AccountOption = Annotated[str | None, typer.Option("--account", help="Account id to use")]
ReplyToOption = Annotated[str | None, typer.Option("--reply-to", help="Message id to reply to")]


def build_runtime() -> FeishuRuntime:
    return FeishuRuntime(FeishuSettings())


def _run[T](coro_factory: Callable[[FeishuRuntime], Coroutine[Any, Any, T]]) -> T:
    configure_logging(profile="cli")
    try:
        return asyncio.run(coro_factory(build_runtime()))
    except FeishuError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(1) from None


@app.command("send-text")
def send_text_command(
    to: Annotated[str, typer.Argument(help="Chat id, open id or prefixed target")],
    text: Annotated[str, typer.Argument(help="Message text")],
    reply_to: ReplyToOption = None,
    account: AccountOption = None,
) -> None:
    """Send one plain text message."""
    result = _run(
        lambda runtime: send_message(runtime, to=to, text=text, reply_to_message_id=reply_to, account_id=account)
    )
    typer.echo(result.message_id)


@app.command("send-media")
def send_media_command(
    to: Annotated[str, typer.Argument(help="Chat id, open id or prefixed target")],
    source: Annotated[str, typer.Argument(help="URL or local path of the media")],
    file_name: Annotated[str | None, typer.Option("--file-name", help="Override the uploaded file name")] = None,
    reply_to: ReplyToOption = None,
    account: AccountOption = None,
) -> None:
    """Upload an image or file and send it."""
    result = _run(
        lambda runtime: send_media(
            runtime,
            to=to,
            media_url=source,
            file_name=file_name,
            reply_to_message_id=reply_to,
            account_id=account,
        )
    )
    typer.echo(result.message_id)


@app.command("reply")
def reply_command(
    chat_id: Annotated[str, typer.Argument(help="Chat to reply in")],
    text: Annotated[list[str], typer.Argument(help="Reply fragments, delivered in order")],
    media: Annotated[list[str] | None, typer.Option("--media", help="Media URL or path for the last fragment")] = None,
    reply_to: ReplyToOption = None,
    account: AccountOption = None,
) -> None:
    """Deliver reply fragments through the reply dispatcher."""
    fragments = [ReplyPayload(text=part) for part in text]
    if media:
        last = fragments.pop() if fragments else ReplyPayload()
        fragments.append(ReplyPayload(text=last.text, media_urls=list(media)))

    async def _reply(runtime: FeishuRuntime) -> bool:
        dispatcher = FeishuReplyDispatcher(runtime, chat_id=chat_id, reply_to_message_id=reply_to, account_id=account)
        return await dispatch_fragments(dispatcher, fragments)

    if not _run(_reply):
        raise typer.Exit(1)


@app.command("download-image")
def download_image_command(
    image_key: Annotated[str, typer.Argument(help="Image key")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Where to write the image")],
    account: AccountOption = None,
) -> None:
    """Download an image by key."""
    result = _run(lambda runtime: download_image(runtime, image_key=image_key, account_id=account))
    output.write_bytes(result.buffer)
    typer.echo(f"{output} {len(result.buffer)} bytes")


@app.command("download-resource")
def download_resource_command(
    message_id: Annotated[str, typer.Argument(help="Message the resource belongs to")],
    file_key: Annotated[str, typer.Argument(help="File or image key")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Where to write the resource")],
    resource_type: Annotated[str, typer.Option("--type", help="image or file")] = "file",
    account: AccountOption = None,
) -> None:
    """Download a file, audio, video or image attached to a message."""
    if resource_type not in ("image", "file"):
        raise typer.BadParameter("type must be image or file")
    result = _run(
        lambda runtime: download_message_resource(
            runtime,
            message_id=message_id,
            file_key=file_key,
            resource_type=resource_type,  # type: ignore[arg-type]
            account_id=account,
        )
    )
    output.write_bytes(result.buffer)
    typer.echo(f"{output} {len(result.buffer)} bytes")
