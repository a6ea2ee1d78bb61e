"""Reply dispatcher: turns streamed reply fragments into ordered sends."""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass

from loguru import logger

from bub_feishu.config import RenderMode
from bub_feishu.media import send_media
from bub_feishu.media_tokens import MEDIA_MARKER, extract_media_from_text
from bub_feishu.runtime import FeishuRuntime
from bub_feishu.send import MentionTarget, send_markdown_card, send_message
from bub_feishu.text import chunk_text, convert_markdown_tables, should_use_card
from bub_feishu.typing_indicator import TypingIndicatorState, add_typing_indicator, remove_typing_indicator


@dataclass(frozen=True)
class ReplyPayload:
    """One fragment of streamed agent output."""

    text: str | None = None
    media_url: str | None = None
    media_urls: list[str] | None = None


class FeishuReplyDispatcher:
    """Coordinates one reply sequence for one incoming trigger.

    Not reusable across replies. Fragments are delivered one at a time, in the
    order the reply engine flushes them.
    """

    def __init__(
        self,
        runtime: FeishuRuntime,
        *,
        chat_id: str,
        reply_to_message_id: str | None = None,
        mention_targets: list[MentionTarget] | None = None,
        account_id: str | None = None,
    ) -> None:
        self.runtime = runtime
        self.chat_id = chat_id
        self.reply_to_message_id = reply_to_message_id
        self.mention_targets = mention_targets
        self.account = runtime.resolve_account(account_id)
        self._account_id = account_id
        self._typing: TypingIndicatorState | None = None
        self._typing_started = False
        self._log = logger.bind(account=self.account.account_id)

    @property
    def render_mode(self) -> RenderMode:
        return self.account.render_mode or self.runtime.settings.render_mode

    @property
    def typing_active(self) -> bool:
        return self._typing is not None

    async def on_reply_start(self) -> None:
        if self._typing_started or not self.reply_to_message_id:
            return
        self._typing_started = True
        try:
            self._typing = await add_typing_indicator(
                self.runtime, message_id=self.reply_to_message_id, account_id=self._account_id
            )
        except Exception:
            self._log.exception("feishu.reply.typing.start_failed message_id={}", self.reply_to_message_id)
            return
        self._log.debug("feishu.reply.typing.added message_id={}", self.reply_to_message_id)

    async def on_idle(self) -> None:
        state, self._typing = self._typing, None
        if state is None:
            return
        try:
            await remove_typing_indicator(self.runtime, state=state, account_id=self._account_id)
        except Exception:
            self._log.exception("feishu.reply.typing.stop_failed message_id={}", state.message_id)
            return
        self._log.debug("feishu.reply.typing.removed message_id={}", state.message_id)

    async def on_error(self, error: BaseException, kind: str = "final") -> None:
        self._log.opt(exception=error).error(
            "feishu.reply.failed account_id={} kind={} chat_id={} error={}",
            self.account.account_id,
            kind,
            self.chat_id,
            error,
        )
        await self.on_idle()

    async def deliver(self, payload: ReplyPayload) -> None:
        text = payload.text or ""
        self._log.debug(
            "feishu.reply.deliver chat_id={} text={} media_urls={} media_url={}",
            self.chat_id,
            text[:100],
            payload.media_urls,
            payload.media_url,
        )
        media_urls = self._media_urls(payload)
        if not media_urls and f"{MEDIA_MARKER}:" in text:
            extracted = extract_media_from_text(text)
            if extracted.media_urls:
                media_urls = extracted.media_urls
                text = extracted.cleaned_text
                self._log.info("feishu.reply.deliver extracted_media count={}", len(media_urls))

        if media_urls:
            await self._deliver_media(text, media_urls)
            return

        if not text.strip():
            self._log.debug("feishu.reply.deliver empty text, skipping")
            return

        await self._deliver_text(text)

    @staticmethod
    def _media_urls(payload: ReplyPayload) -> list[str]:
        if payload.media_urls is not None:
            return list(payload.media_urls)
        if payload.media_url:
            return [payload.media_url]
        return []

    async def _deliver_media(self, text: str, media_urls: list[str]) -> None:
        self._log.info("feishu.reply.media count={} chat_id={}", len(media_urls), self.chat_id)
        if text.strip():
            await send_message(
                self.runtime,
                to=self.chat_id,
                text=text,
                reply_to_message_id=self.reply_to_message_id,
                account_id=self._account_id,
            )
        for url in media_urls:
            try:
                await send_media(self.runtime, to=self.chat_id, media_url=url, account_id=self._account_id)
            except Exception as exc:
                self._log.error("feishu.reply.media.failed url={} error={}", url, exc)
                await send_message(
                    self.runtime, to=self.chat_id, text=f"[media error] {url}", account_id=self._account_id
                )

    async def _deliver_text(self, text: str) -> None:
        settings = self.runtime.settings
        mode = self.render_mode
        use_card = mode == "card" or (mode == "auto" and should_use_card(text))
        if use_card:
            chunks = chunk_text(text, settings.text_chunk_limit, settings.chunk_mode)
            send = send_markdown_card
        else:
            converted = convert_markdown_tables(text, settings.table_mode)
            chunks = chunk_text(converted, settings.text_chunk_limit, settings.chunk_mode)
            send = send_message

        self._log.info(
            "feishu.reply.text chunks={} card={} chat_id={}", len(chunks), use_card, self.chat_id
        )
        for index, chunk in enumerate(chunks):
            await send(
                self.runtime,
                to=self.chat_id,
                text=chunk,
                reply_to_message_id=self.reply_to_message_id,
                mentions=self.mention_targets if index == 0 else None,
                account_id=self._account_id,
            )


async def dispatch_fragments(
    dispatcher: FeishuReplyDispatcher,
    fragments: Iterable[ReplyPayload] | AsyncIterable[ReplyPayload],
    *,
    kind: str = "block",
) -> bool:
    """Run one reply sequence to completion.

    Returns ``False`` when a fragment failed; the failure is reported through
    ``on_error`` and later fragments are not delivered. The typing indicator is
    cleared on every exit path.
    """
    await dispatcher.on_reply_start()
    try:
        if isinstance(fragments, AsyncIterable):
            async for fragment in fragments:
                await dispatcher.deliver(fragment)
        else:
            for fragment in fragments:
                await dispatcher.deliver(fragment)
    except Exception as exc:
        await dispatcher.on_error(exc, kind)
        return False
    finally:
        await dispatcher.on_idle()
    return True
