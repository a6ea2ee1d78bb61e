"""Typing indicator built on message reactions.

Feishu has no native typing signal, so a reaction on the triggering message
stands in for one while a reply is being produced.
"""

from __future__ import annotations

from dataclasses import dataclass

from bub_feishu.payloads import ensure_success, response_field
from bub_feishu.runtime import FeishuRuntime


@dataclass(frozen=True)
class TypingIndicatorState:
    message_id: str
    reaction_id: str | None


async def add_typing_indicator(
    runtime: FeishuRuntime, *, message_id: str, account_id: str | None = None
) -> TypingIndicatorState:
    _, client = runtime.client_for(account_id)
    response = await client.add_reaction(message_id, runtime.settings.typing_emoji)
    ensure_success(response, "typing indicator add")
    data = response_field(response, "data")
    reaction_id = response_field(data, "reaction_id") if data is not None else None
    return TypingIndicatorState(message_id=message_id, reaction_id=reaction_id)


async def remove_typing_indicator(
    runtime: FeishuRuntime, *, state: TypingIndicatorState, account_id: str | None = None
) -> None:
    if not state.reaction_id:
        return
    _, client = runtime.client_for(account_id)
    response = await client.delete_reaction(state.message_id, state.reaction_id)
    ensure_success(response, "typing indicator remove")
