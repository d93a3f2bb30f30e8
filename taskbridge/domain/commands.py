"""斜杠命令定义：注册到平台时使用的 JSON 结构。"""

from __future__ import annotations

from typing import Any

from taskbridge.domain.enums import ApplicationCommandOptionType, ApplicationCommandType, Priority


def build_task_command(name: str = "task") -> dict[str, Any]:
    """构建单一任务命令：describe 必填，其余为可选覆盖项。"""
    string_type = ApplicationCommandOptionType.string.value
    return {
        "name": name,
        "type": ApplicationCommandType.chat_input.value,
        "description": "Create an Asana task from a description and repo context",
        "options": [
            {"type": string_type, "name": "describe", "description": "Task idea", "required": True},
            {"type": string_type, "name": "project", "description": "Asana project GID", "required": False},
            {
                "type": string_type,
                "name": "section",
                "description": "Asana section name or GID",
                "required": False,
            },
            {
                "type": string_type,
                "name": "priority",
                "description": "p0/p1/p2",
                "required": False,
                "choices": [{"name": item.value, "value": item.value} for item in Priority],
            },
        ],
    }
