"""Shared adapter context: settings, clients, scratch paths and HTTP."""

from __future__ import annotations

from collections.abc import Callable

import httpx

from bub_feishu.client import FeishuClient, LarkClient
from bub_feishu.config import FeishuAccount, FeishuSettings, resolve_account
from bub_feishu.errors import AccountNotConfiguredError
from bub_feishu.tempfiles import TempPathBroker

ClientFactory = Callable[[FeishuAccount], FeishuClient]
HttpClientFactory = Callable[[], httpx.AsyncClient]


class FeishuRuntime:
    """Injected context shared by media, send and reply operations.

    Clients are cached per account and shared between concurrent replies.
    """

    def __init__(
        self,
        settings: FeishuSettings,
        *,
        client_factory: ClientFactory | None = None,
        http_client_factory: HttpClientFactory | None = None,
        broker: TempPathBroker | None = None,
    ) -> None:
        self.settings = settings
        self.broker = broker or TempPathBroker(settings.temp_dir)
        self._client_factory = client_factory or LarkClient.for_account
        self._http_client_factory = http_client_factory or self._default_http_client
        self._clients: dict[str, FeishuClient] = {}

    def resolve_account(self, account_id: str | None = None) -> FeishuAccount:
        return resolve_account(self.settings, account_id)

    def client_for(self, account_id: str | None = None) -> tuple[FeishuAccount, FeishuClient]:
        account = self.resolve_account(account_id)
        if not account.configured:
            raise AccountNotConfiguredError(account.account_id)
        client = self._clients.get(account.account_id)
        if client is None:
            client = self._client_factory(account)
            self._clients[account.account_id] = client
        return account, client

    def http_client(self) -> httpx.AsyncClient:
        return self._http_client_factory()

    def _default_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.media_fetch_timeout, follow_redirects=True)
