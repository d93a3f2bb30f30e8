"""平台 REST 客户端：编辑交互原始回复与注册斜杠命令。"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from taskbridge.domain.errors import DeliveryError

logger = logging.getLogger(__name__)

NO_MENTIONS: dict[str, list[str]] = {"parse": []}


class DiscordInteractionClient:
    """交互回执异步 HTTP 客户端封装。"""

    def __init__(
        self,
        base_url: str,
        bot_token: str | None = None,
        timeout_seconds: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._closed = False
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            headers={"User-Agent": "DiscordBot (taskbridge, 1.0)"},
            transport=transport,
        )

    def _client_or_raise(self) -> httpx.AsyncClient:
        if self._closed:
            raise RuntimeError("DiscordInteractionClient is already closed")
        return self._client

    async def aclose(self) -> None:
        """关闭底层连接池。"""
        if self._closed:
            return
        await self._client.aclose()
        self._closed = True

    async def _request(
        self,
        *,
        method: str,
        path: str,
        op: str,
        json_body: Any,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        started = time.perf_counter()
        try:
            response = await self._client_or_raise().request(method, path, json=json_body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            status_code = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            logger.error(
                "discord request failed",
                extra={
                    "event": "discord.request.failed",
                    "external_service": "discord",
                    "op": op,
                    "duration_ms": duration_ms,
                    "status_code": status_code,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise DeliveryError(f"{op} failed: {type(exc).__name__}") from exc
        return response

    async def edit_original_response(self, application_id: str, interaction_token: str, content: str) -> None:
        """编辑延迟确认对应的原始回复；由交互 token 鉴权，无需 bot token。"""
        await self._request(
            method="PATCH",
            path=f"/webhooks/{application_id}/{interaction_token}/messages/@original",
            op="interaction.edit_original",
            json_body={"content": content, "allowed_mentions": NO_MENTIONS},
        )

    async def register_commands(self, application_id: str, commands: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """整体覆盖全局命令列表。"""
        if not self._bot_token:
            raise DeliveryError("bot token is required to register commands")
        response = await self._request(
            method="PUT",
            path=f"/applications/{application_id}/commands",
            op="commands.register",
            json_body=commands,
            headers={"Authorization": f"Bot {self._bot_token}"},
        )
        return list(response.json())
