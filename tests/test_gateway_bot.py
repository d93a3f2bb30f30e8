"""常连接模式测试：延迟确认失败即放弃，成功后编辑一次占位回复。"""

from __future__ import annotations

import asyncio

from fakes import SINK_URL, CallLog, FakeContextProvider, FakeExtractionProvider, FakeTaskSink
from taskbridge.application.orchestrator import TaskOrchestrator
from taskbridge.config import Settings
from taskbridge.domain.models import TaskDestination
from taskbridge.gateway.bot import TaskCommandGateway


class _FakeResponse:
    def __init__(self, error: Exception | None) -> None:
        self.defer_calls: list[dict] = []
        self._error = error

    async def defer(self, **kwargs) -> None:
        self.defer_calls.append(kwargs)
        if self._error:
            raise self._error


class _FakeInteraction:
    def __init__(self, defer_error: Exception | None = None, edit_error: Exception | None = None) -> None:
        self.id = 42
        self.response = _FakeResponse(defer_error)
        self.edits: list[dict] = []
        self._edit_error = edit_error

    async def edit_original_response(self, **kwargs) -> None:
        self.edits.append(kwargs)
        if self._edit_error:
            raise self._edit_error


def _gateway(log: CallLog) -> TaskCommandGateway:
    orchestrator = TaskOrchestrator(
        context_provider=FakeContextProvider(log),
        extraction_provider=FakeExtractionProvider(log),
        task_sink=FakeTaskSink(log),
        default_destination=TaskDestination(project_gid="PROJECT", section_ref="111"),
    )
    return TaskCommandGateway(settings=Settings(_env_file=None), orchestrator=orchestrator)


def test_handle_task_defers_ephemerally_then_edits_once(call_log: CallLog) -> None:
    interaction = _FakeInteraction()

    asyncio.run(_gateway(call_log).handle_task(interaction, "Fix login bug", priority="p1"))

    assert interaction.response.defer_calls == [{"ephemeral": True, "thinking": True}]
    assert call_log.names == ["context", "extraction", "sink"]
    assert len(interaction.edits) == 1
    assert interaction.edits[0]["content"] == f"Created: {SINK_URL}"


def test_defer_failure_skips_pipeline(call_log: CallLog) -> None:
    """确认失败时不执行任何下游调用，也不尝试编辑。"""
    interaction = _FakeInteraction(defer_error=RuntimeError("session lost"))

    asyncio.run(_gateway(call_log).handle_task(interaction, "Fix login bug"))

    assert call_log.calls == []
    assert interaction.edits == []


def test_edit_failure_is_only_logged(call_log: CallLog) -> None:
    interaction = _FakeInteraction(edit_error=RuntimeError("token expired"))

    asyncio.run(_gateway(call_log).handle_task(interaction, "Fix login bug"))

    assert call_log.count("sink") == 1
    assert len(interaction.edits) == 1
