"""交互回执（无状态 webhook 模式）：同步确认体构造与延迟结果的唯一一次投递。"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol, runtime_checkable

from taskbridge.application.orchestrator import TaskOrchestrator
from taskbridge.domain import messages
from taskbridge.domain.enums import InteractionResponseType, MessageFlag
from taskbridge.domain.errors import DeliveryError
from taskbridge.domain.models import Interaction
from taskbridge.infra.chat.client import NO_MENTIONS
from taskbridge.infra.logging.context import bind_log_context

logger = logging.getLogger(__name__)


@runtime_checkable
class InteractionEditor(Protocol):
    async def edit_original_response(self, application_id: str, interaction_token: str, content: str) -> None: ...


def pong_response() -> dict[str, Any]:
    return {"type": InteractionResponseType.pong.value}


def immediate_message(content: str) -> dict[str, Any]:
    """即时的仅发起者可见消息，不延迟、不触发后台任务。"""
    return {
        "type": InteractionResponseType.channel_message_with_source.value,
        "data": {
            "content": messages.truncate(content),
            "flags": MessageFlag.ephemeral.value,
            "allowed_mentions": NO_MENTIONS,
        },
    }


def deferred_ack() -> dict[str, Any]:
    """空的延迟占位回复；可见性在此处确定，后续编辑无法修改。"""
    return {
        "type": InteractionResponseType.deferred_channel_message_with_source.value,
        "data": {"flags": MessageFlag.ephemeral.value, "allowed_mentions": NO_MENTIONS},
    }


class WebhookResponder:
    """延迟任务的错误边界：成功与异常分支都收敛到一次原始回复编辑。"""

    def __init__(self, *, orchestrator: TaskOrchestrator, client: InteractionEditor) -> None:
        self._orchestrator = orchestrator
        self._client = client

    async def run_deferred(self, interaction: Interaction) -> None:
        """由 HTTP 处理器派发后在响应之外执行，不向调用方抛出任何异常。"""
        with bind_log_context(interaction_id=interaction.id or None, command=interaction.command_name):
            options = interaction.options
            try:
                result = await self._orchestrator.execute(
                    options.describe or "",
                    options.project,
                    options.section,
                    options.priority,
                )
            except Exception as exc:
                logger.exception(
                    "deferred task crashed",
                    extra={"event": "interaction.deferred.crashed", "error_type": type(exc).__name__},
                )
                result = messages.failure_message(messages.UNEXPECTED_FAILURE_CAUSE)
            await self.deliver(interaction, result)

    async def deliver(self, interaction: Interaction, content: str) -> bool:
        """编辑原始回复；失败只记录，不重试（交互 token 的投递窗口可能已过期）。"""
        started = time.perf_counter()
        try:
            await self._client.edit_original_response(
                interaction.application_id,
                interaction.token,
                messages.truncate(content),
            )
        except DeliveryError as exc:
            logger.error(
                "interaction delivery failed",
                extra={
                    "event": "interaction.delivery.failed",
                    "external_service": "discord",
                    "op": "interaction.edit_original",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return False
        except Exception as exc:
            logger.exception(
                "interaction delivery crashed",
                extra={
                    "event": "interaction.delivery.failed",
                    "external_service": "discord",
                    "op": "interaction.edit_original",
                    "error_type": type(exc).__name__,
                },
            )
            return False
        logger.info(
            "interaction delivered",
            extra={
                "event": "interaction.delivery.succeeded",
                "external_service": "discord",
                "op": "interaction.edit_original",
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return True
