"""Exception types for the Feishu channel adapter."""

from __future__ import annotations


class FeishuError(Exception):
    """Base exception for the Feishu adapter."""


class AccountNotConfiguredError(FeishuError):
    """Raised when an account is missing credentials or disabled."""

    def __init__(self, account_id: str) -> None:
        super().__init__(f'Feishu account "{account_id}" not configured')
        self.account_id = account_id


class RemoteOperationError(FeishuError):
    """Raised when a remote call reports a nonzero status code."""

    def __init__(self, action: str, code: object = None, msg: str | None = None) -> None:
        detail = msg or f"code {code}"
        super().__init__(f"Feishu {action} failed: {detail}")
        self.action = action
        self.code = code
        self.msg = msg


class UnrecognizedResponseShapeError(FeishuError):
    """Raised when a binary response matches none of the known shapes."""

    def __init__(self, context: str) -> None:
        super().__init__(f"Feishu {context}: unexpected response format")
        self.context = context


class MissingResultKeyError(FeishuError):
    """Raised when an upload succeeds without returning its key."""

    def __init__(self, action: str, key: str) -> None:
        super().__init__(f"Feishu {action} failed: no {key} returned")
        self.action = action
        self.key = key


class LocalFileUnreadableError(FeishuError):
    """Raised when a local media path cannot be read."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Local file not found or unreadable: {path}")
        self.path = path


class FetchFailedError(FeishuError):
    """Raised when a remote media URL answers with a non-success status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"Failed to fetch media from URL: {status}")
        self.status = status


class NoMediaSourceError(FeishuError):
    """Raised when neither a URL nor a buffer is given."""

    def __init__(self) -> None:
        super().__init__("Either media_url or media_buffer must be provided")


class InvalidTargetError(FeishuError):
    """Raised when a send target cannot be normalized."""

    def __init__(self, target: str) -> None:
        super().__init__(f"Invalid Feishu target: {target}")
        self.target = target
