"""领域枚举定义：统一交互类型、响应类型、选项类型与优先级取值。"""

from __future__ import annotations

from enum import Enum, IntEnum


class InteractionType(IntEnum):
    """平台下发的交互类型。"""
    ping = 1
    application_command = 2
    message_component = 3
    application_command_autocomplete = 4
    modal_submit = 5


class InteractionResponseType(IntEnum):
    """同步响应体中的回复类型。"""
    pong = 1
    channel_message_with_source = 4
    deferred_channel_message_with_source = 5


class ApplicationCommandType(IntEnum):
    """命令子类型，仅 chat_input 为文本输入式斜杠命令。"""
    chat_input = 1
    user = 2
    message = 3


class ApplicationCommandOptionType(IntEnum):
    """命令选项取值类型。"""
    sub_command = 1
    sub_command_group = 2
    string = 3
    integer = 4
    boolean = 5
    user = 6
    channel = 7
    role = 8
    mentionable = 9
    number = 10
    attachment = 11


class MessageFlag(IntEnum):
    ephemeral = 1 << 6


class Priority(str, Enum):
    """任务优先级枚举。"""
    p0 = "p0"
    p1 = "p1"
    p2 = "p2"
