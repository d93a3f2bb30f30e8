"""领域数据结构定义：交互、检索结果、任务载荷与投递位置等核心值对象。"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, field_validator

from taskbridge.domain.enums import ApplicationCommandType, InteractionType


@dataclass(slots=True, frozen=True)
class RepoHit:
    """代码检索单条命中，仅作为提取提示词素材，不落盘。"""
    repo: str
    path: str
    url: str
    digest: str | None = None


class TaskPayload(BaseModel):
    """结构化提取结果，必须满足固定 schema。"""
    model_config = ConfigDict(extra="forbid")

    title: str
    body: str
    labels: list[str] | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("title must not be empty")
        return text


@dataclass(slots=True, frozen=True)
class TaskDestination:
    """任务投递位置：项目 ID 与分区引用（ID 或名称）。"""
    project_gid: str
    section_ref: str


@dataclass(slots=True, frozen=True)
class TaskOptions:
    """命令选项在解码时一次性落入的固定结构。"""
    describe: str | None = None
    project: str | None = None
    section: str | None = None
    priority: str | None = None


@dataclass(slots=True)
class Interaction:
    """一次入站交互；按请求创建，投递结束即丢弃。"""
    type: InteractionType
    id: str = ""
    application_id: str = ""
    token: str = ""
    command_name: str | None = None
    command_type: ApplicationCommandType | None = None
    options: TaskOptions = field(default_factory=TaskOptions)

    @property
    def is_chat_input(self) -> bool:
        return self.command_type == ApplicationCommandType.chat_input
