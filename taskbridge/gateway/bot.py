"""常连接会话模式：通过 discord.py 接收斜杠命令，先延迟确认再编辑同一条回复。"""

from __future__ import annotations

import logging
import time

import discord
from discord import app_commands

from taskbridge.application.orchestrator import TaskOrchestrator
from taskbridge.config import Settings
from taskbridge.domain import messages
from taskbridge.domain.enums import Priority
from taskbridge.infra.logging.context import bind_log_context

logger = logging.getLogger(__name__)

PRIORITY_CHOICES = [app_commands.Choice(name=item.value, value=item.value) for item in Priority]


class TaskCommandGateway:
    """命令处理器：确认失败即放弃执行，成功与失败都只编辑一次占位回复。"""

    def __init__(self, *, settings: Settings, orchestrator: TaskOrchestrator) -> None:
        self._settings = settings
        self._orchestrator = orchestrator

    async def handle_task(
        self,
        interaction: discord.Interaction,
        describe: str,
        project: str | None = None,
        section: str | None = None,
        priority: str | None = None,
    ) -> None:
        interaction_id = str(getattr(interaction, "id", "") or "") or None
        with bind_log_context(interaction_id=interaction_id, command=self._settings.discord_command_name):
            try:
                await interaction.response.defer(ephemeral=True, thinking=True)
            except Exception as exc:
                # 会话已断开时没有可投递结果的通道，直接放弃。
                logger.error(
                    "interaction defer failed",
                    extra={
                        "event": "interaction.defer.failed",
                        "external_service": "discord",
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                return

            result = await self._orchestrator.execute(describe, project, section, priority)

            started = time.perf_counter()
            try:
                await interaction.edit_original_response(
                    content=messages.truncate(result),
                    allowed_mentions=discord.AllowedMentions.none(),
                )
            except Exception as exc:
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
                return
            logger.info(
                "interaction delivered",
                extra={
                    "event": "interaction.delivery.succeeded",
                    "external_service": "discord",
                    "op": "interaction.edit_original",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )

    def build_client(self) -> discord.Client:
        """构造客户端并注册命令；不申请消息内容权限。"""
        client = discord.Client(intents=discord.Intents(guilds=True))
        tree = app_commands.CommandTree(client)
        gateway = self

        @tree.command(
            name=self._settings.discord_command_name,
            description="Create an Asana task from a description and repo context",
        )
        @app_commands.describe(
            describe="Task idea",
            project="Asana project GID",
            section="Asana section name or GID",
            priority="p0/p1/p2",
        )
        @app_commands.choices(priority=PRIORITY_CHOICES)
        async def task_command(
            interaction: discord.Interaction,
            describe: str,
            project: str | None = None,
            section: str | None = None,
            priority: app_commands.Choice[str] | None = None,
        ) -> None:
            await gateway.handle_task(
                interaction,
                describe,
                project,
                section,
                priority.value if priority else None,
            )

        @client.event
        async def on_ready() -> None:
            logger.info(
                "gateway session ready",
                extra={"event": "gateway.ready", "payload_preview": {"user": str(client.user)}},
            )
            if self._settings.discord_sync_commands_on_ready:
                synced = await tree.sync()
                logger.info(
                    "gateway commands synced",
                    extra={"event": "gateway.commands.synced", "payload_preview": {"count": len(synced)}},
                )

        return client
