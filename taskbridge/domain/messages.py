"""用户可见文案：成功、失败与即时提示的固定格式。"""

from __future__ import annotations

# 平台单条消息上限。
MAX_MESSAGE_CHARS = 2000

MISSING_DESCRIBE = "⚠️ Missing required `describe` option."
UNSUPPORTED_COMMAND_TYPE = "Unsupported command type."
FAILURE_PREFIX = "⚠️ Unable to create task: "
SUCCESS_PREFIX = "Created: "
UNEXPECTED_FAILURE_CAUSE = "Unexpected error while creating the task."


def success_message(url: str) -> str:
    return f"{SUCCESS_PREFIX}{url}"


def failure_message(cause: str) -> str:
    text = cause.strip() or UNEXPECTED_FAILURE_CAUSE
    return truncate(f"{FAILURE_PREFIX}{text}")


def truncate(text: str, limit: int = MAX_MESSAGE_CHARS) -> str:
    """超过平台上限时截断并以省略号结尾。"""
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"
