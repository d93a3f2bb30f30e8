"""平台 REST 客户端测试：原始回复编辑与命令注册请求结构。"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from taskbridge.domain.commands import build_task_command
from taskbridge.domain.errors import DeliveryError
from taskbridge.infra.chat.client import DiscordInteractionClient


def _client(handler, bot_token: str | None = None) -> DiscordInteractionClient:
    return DiscordInteractionClient(
        base_url="https://discord.test/api/v10",
        bot_token=bot_token,
        transport=httpx.MockTransport(handler),
    )


def test_edit_original_response_patches_webhook_message() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"id": "m-1"})

    asyncio.run(_client(handler).edit_original_response("app-1", "tok-1", "Created: https://x"))

    request = captured[0]
    assert request.method == "PATCH"
    assert request.url.path == "/api/v10/webhooks/app-1/tok-1/messages/@original"
    assert "Authorization" not in request.headers
    assert json.loads(request.content) == {"content": "Created: https://x", "allowed_mentions": {"parse": []}}


def test_edit_failure_raises_delivery_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Unknown Webhook"})

    with pytest.raises(DeliveryError):
        asyncio.run(_client(handler).edit_original_response("app-1", "tok-1", "x"))


def test_register_commands_puts_global_command_list() -> None:
    """以 bot token 鉴权整体覆盖全局命令。"""
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json=json.loads(request.content))

    registered = asyncio.run(
        _client(handler, bot_token="bot-token").register_commands("app-1", [build_task_command()])
    )

    request = captured[0]
    assert request.method == "PUT"
    assert request.url.path == "/api/v10/applications/app-1/commands"
    assert request.headers["Authorization"] == "Bot bot-token"
    assert [item["name"] for item in registered] == ["task"]


def test_register_commands_requires_bot_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(DeliveryError):
        asyncio.run(_client(handler).register_commands("app-1", [build_task_command()]))


def test_task_command_definition() -> None:
    command = build_task_command()

    assert command["name"] == "task"
    assert command["type"] == 1
    options = {item["name"]: item for item in command["options"]}
    assert list(options) == ["describe", "project", "section", "priority"]
    assert options["describe"]["required"] is True
    assert all(item["type"] == 3 for item in options.values())
    assert [choice["value"] for choice in options["priority"]["choices"]] == ["p0", "p1", "p2"]
