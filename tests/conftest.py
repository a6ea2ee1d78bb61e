from __future__ import annotations

import itertools
from pathlib import Path
from typing import IO, Any

import pytest

from bub_feishu.config import FeishuSettings
from bub_feishu.runtime import FeishuRuntime
from bub_feishu.tempfiles import TempPathBroker


class FakeClient:
    """In-memory stand-in for the remote Feishu operations."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.responses: dict[str, Any] = {}
        self.uploaded: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    def _response(self, name: str, default: Any) -> Any:
        value = self.responses.get(name, default)
        if isinstance(value, BaseException):
            raise value
        if callable(value):
            return value()
        return value

    async def get_image(self, image_key: str) -> Any:
        self.calls.append(("get_image", {"image_key": image_key}))
        return self._response("get_image", b"")

    async def get_message_resource(self, message_id: str, file_key: str, resource_type: str) -> Any:
        self.calls.append(
            ("get_message_resource", {"message_id": message_id, "file_key": file_key, "type": resource_type})
        )
        return self._response("get_message_resource", b"")

    async def create_image(self, image_type: str, image: IO[bytes]) -> Any:
        self.calls.append(("create_image", {"image_type": image_type}))
        self.uploaded.append({"name": getattr(image, "name", None), "content": image.read()})
        return self._response("create_image", {"code": 0, "data": {"image_key": f"img_{next(self._ids)}"}})

    async def create_file(self, file_type: str, file_name: str, file: IO[bytes], duration: int | None = None) -> Any:
        self.calls.append(("create_file", {"file_type": file_type, "file_name": file_name, "duration": duration}))
        self.uploaded.append({"name": getattr(file, "name", None), "content": file.read()})
        return self._response("create_file", {"code": 0, "data": {"file_key": f"file_{next(self._ids)}"}})

    async def create_message(self, receive_id_type: str, receive_id: str, msg_type: str, content: str) -> Any:
        self.calls.append(
            (
                "create_message",
                {"receive_id_type": receive_id_type, "receive_id": receive_id, "msg_type": msg_type, "content": content},
            )
        )
        return self._response("create_message", {"code": 0, "data": {"message_id": f"om_{next(self._ids)}"}})

    async def reply_message(self, message_id: str, msg_type: str, content: str) -> Any:
        self.calls.append(("reply_message", {"message_id": message_id, "msg_type": msg_type, "content": content}))
        return self._response("reply_message", {"code": 0, "data": {"message_id": f"om_{next(self._ids)}"}})

    async def add_reaction(self, message_id: str, emoji_type: str) -> Any:
        self.calls.append(("add_reaction", {"message_id": message_id, "emoji_type": emoji_type}))
        return self._response("add_reaction", {"code": 0, "data": {"reaction_id": "r_1"}})

    async def delete_reaction(self, message_id: str, reaction_id: str) -> Any:
        self.calls.append(("delete_reaction", {"message_id": message_id, "reaction_id": reaction_id}))
        return self._response("delete_reaction", {"code": 0, "data": {"reaction_id": reaction_id}})

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def settings() -> FeishuSettings:
    return FeishuSettings(app_id="cli_test", app_secret="secret")  # noqa: S106


@pytest.fixture
def runtime(settings: FeishuSettings, fake_client: FakeClient, scratch_dir: Path) -> FeishuRuntime:
    return FeishuRuntime(
        settings,
        client_factory=lambda _account: fake_client,
        broker=TempPathBroker(scratch_dir),
    )
