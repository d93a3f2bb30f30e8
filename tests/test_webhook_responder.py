"""webhook 回执测试：确认体结构与延迟结果的单次投递。"""

from __future__ import annotations

import asyncio

from fakes import SINK_URL, CallLog, FakeContextProvider, FakeExtractionProvider, FakeInteractionClient, FakeTaskSink
from taskbridge.application.orchestrator import TaskOrchestrator
from taskbridge.application.responder import (
    InteractionEditor,
    WebhookResponder,
    deferred_ack,
    immediate_message,
    pong_response,
)
from taskbridge.domain import messages
from taskbridge.domain.enums import InteractionType
from taskbridge.domain.errors import DeliveryError
from taskbridge.domain.models import Interaction, TaskDestination, TaskOptions
from taskbridge.infra.chat.client import DiscordInteractionClient


def _interaction(describe: str | None = "Fix login bug") -> Interaction:
    return Interaction(
        type=InteractionType.application_command,
        id="i-1",
        application_id="app-1",
        token="tok-1",
        command_name="task",
        options=TaskOptions(describe=describe),
    )


def _responder(log: CallLog, client: FakeInteractionClient) -> WebhookResponder:
    orchestrator = TaskOrchestrator(
        context_provider=FakeContextProvider(log),
        extraction_provider=FakeExtractionProvider(log),
        task_sink=FakeTaskSink(log),
        default_destination=TaskDestination(project_gid="PROJECT", section_ref="111"),
    )
    return WebhookResponder(orchestrator=orchestrator, client=client)


class _CrashingOrchestrator:
    async def execute(self, *args, **kwargs) -> str:
        raise RuntimeError("internal_field sk-live-SECRET")


def test_ack_bodies() -> None:
    assert pong_response() == {"type": 1}
    assert deferred_ack() == {"type": 5, "data": {"flags": 64, "allowed_mentions": {"parse": []}}}
    reply = immediate_message("x" * 2500)
    assert reply["type"] == 4
    assert len(reply["data"]["content"]) == 2000
    assert reply["data"]["content"].endswith("…")


def test_run_deferred_delivers_result_once(call_log: CallLog) -> None:
    client = FakeInteractionClient()

    asyncio.run(_responder(call_log, client).run_deferred(_interaction()))

    assert client.edits == [("app-1", "tok-1", f"Created: {SINK_URL}")]


def test_run_deferred_delivers_failure_when_orchestrator_crashes() -> None:
    """编排器意外抛错时仍然投递一次通用失败消息，异常原文不回显。"""
    client = FakeInteractionClient()
    responder = WebhookResponder(orchestrator=_CrashingOrchestrator(), client=client)

    asyncio.run(responder.run_deferred(_interaction()))

    assert client.edits == [("app-1", "tok-1", messages.FAILURE_PREFIX + messages.UNEXPECTED_FAILURE_CAUSE)]
    assert "sk-live-SECRET" not in client.edits[0][2]


def test_delivery_failure_is_swallowed(call_log: CallLog) -> None:
    """投递失败不重试、不向外抛出。"""
    client = FakeInteractionClient(error=DeliveryError("interaction.edit_original failed: ConnectError"))
    responder = _responder(call_log, client)

    asyncio.run(responder.run_deferred(_interaction()))
    delivered = asyncio.run(responder.deliver(_interaction(), "hello"))

    assert delivered is False
    assert len(client.edits) == 2


def test_unexpected_delivery_exception_is_swallowed(call_log: CallLog) -> None:
    client = FakeInteractionClient(error=RuntimeError("socket closed"))

    delivered = asyncio.run(_responder(call_log, client).deliver(_interaction(), "hello"))

    assert delivered is False


def test_real_and_fake_clients_satisfy_editor_protocol() -> None:
    assert isinstance(DiscordInteractionClient("https://discord.test/api/v10"), InteractionEditor)
    assert isinstance(FakeInteractionClient(), InteractionEditor)
