"""交互解码：将已验签的原始请求体解析为类型化 Interaction。"""

from __future__ import annotations

import json
from typing import Any

from taskbridge.domain.enums import ApplicationCommandOptionType, ApplicationCommandType, InteractionType
from taskbridge.domain.errors import MalformedPayload
from taskbridge.domain.models import Interaction, TaskOptions


def string_option(options: Any, name: str) -> str | None:
    """在扁平选项列表中按名称（区分大小写）查找字符串选项；缺失或类型不符返回 None。"""
    if not isinstance(options, list):
        return None
    for item in options:
        if not isinstance(item, dict) or item.get("name") != name:
            continue
        if item.get("type") != ApplicationCommandOptionType.string.value:
            return None
        value = item.get("value")
        if not isinstance(value, str) or not value.strip():
            return None
        return value
    return None


def _task_options(options: Any) -> TaskOptions:
    return TaskOptions(
        describe=string_option(options, "describe"),
        project=string_option(options, "project"),
        section=string_option(options, "section"),
        priority=string_option(options, "priority"),
    )


def _command_type(raw: Any) -> ApplicationCommandType | None:
    # 平台省略 type 时按 chat_input 处理。
    if raw is None:
        return ApplicationCommandType.chat_input
    try:
        return ApplicationCommandType(raw)
    except ValueError:
        return None


def decode_interaction(raw: bytes) -> Interaction:
    """解析交互 JSON；结构非法时抛出 MalformedPayload。"""
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedPayload("Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise MalformedPayload("Invalid JSON payload")

    raw_type = payload.get("type")
    if isinstance(raw_type, bool) or not isinstance(raw_type, int):
        raise MalformedPayload("Unsupported interaction type")
    try:
        interaction_type = InteractionType(raw_type)
    except ValueError as exc:
        raise MalformedPayload("Unsupported interaction type") from exc

    interaction = Interaction(
        type=interaction_type,
        id=str(payload.get("id") or ""),
        application_id=str(payload.get("application_id") or ""),
        token=str(payload.get("token") or ""),
    )
    if interaction_type != InteractionType.application_command:
        return interaction

    data = payload.get("data")
    if not isinstance(data, dict):
        raise MalformedPayload("Missing command data")
    interaction.command_name = data.get("name") if isinstance(data.get("name"), str) else None
    interaction.command_type = _command_type(data.get("type"))
    interaction.options = _task_options(data.get("options"))
    return interaction
