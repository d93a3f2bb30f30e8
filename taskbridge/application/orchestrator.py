"""任务编排服务：按 检索 → 提取 → 落地 顺序串行调用下游，并产出唯一结果消息。"""

from __future__ import annotations

import logging
import time
from typing import Protocol, runtime_checkable

from taskbridge.domain import messages
from taskbridge.domain.enums import Priority
from taskbridge.domain.errors import ConfigurationError, ContextSearchError, TaskBridgeError
from taskbridge.domain.models import RepoHit, TaskDestination, TaskPayload

logger = logging.getLogger(__name__)


@runtime_checkable
class ContextProvider(Protocol):
    async def search(self, query: str) -> list[RepoHit]: ...


@runtime_checkable
class ExtractionProvider(Protocol):
    async def extract(self, describe: str, priority: str, repo_context: list[RepoHit]) -> TaskPayload: ...


@runtime_checkable
class TaskSink(Protocol):
    async def create_task(self, payload: TaskPayload, destination: TaskDestination) -> str: ...


_VALID_PRIORITIES = {item.value for item in Priority}


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


class TaskOrchestrator:
    """单次调用独占流水线状态；除只读配置外不跨调用共享可变状态。"""

    def __init__(
        self,
        *,
        context_provider: ContextProvider,
        extraction_provider: ExtractionProvider,
        task_sink: TaskSink,
        default_destination: TaskDestination,
        default_priority: str = Priority.p2.value,
        context_failure_policy: str = "fail",
    ) -> None:
        self._context_provider = context_provider
        self._extraction_provider = extraction_provider
        self._task_sink = task_sink
        self._default_destination = default_destination
        self._default_priority = default_priority
        self._context_failure_policy = context_failure_policy

    def resolve(
        self,
        project_option: str | None,
        section_option: str | None,
        priority_option: str | None,
    ) -> tuple[TaskDestination, str]:
        """解析投递位置与优先级；在任何网络调用之前完成校验。"""
        destination = TaskDestination(
            project_gid=_clean(project_option) or self._default_destination.project_gid,
            section_ref=_clean(section_option) or self._default_destination.section_ref,
        )
        if not destination.project_gid:
            raise ConfigurationError(
                "No Asana project configured. Provide `project` option or set ASANA_PROJECT_GID."
            )
        if not destination.section_ref:
            raise ConfigurationError(
                "No Asana section configured. Provide `section` option or set ASANA_SECTION_GID."
            )
        priority = (_clean(priority_option) or self._default_priority).lower()
        if priority not in _VALID_PRIORITIES:
            raise ConfigurationError(f"Unknown priority `{priority}`. Use one of p0, p1, p2.")
        return destination, priority

    async def execute(
        self,
        describe: str,
        project_option: str | None = None,
        section_option: str | None = None,
        priority_option: str | None = None,
    ) -> str:
        """执行完整流水线；任何失败都在此处转换为失败消息，不向外抛出。"""
        started = time.perf_counter()
        try:
            url = await self._run(describe, project_option, section_option, priority_option)
        except TaskBridgeError as exc:
            logger.warning(
                "task pipeline failed",
                extra={
                    "event": "task.pipeline.failed",
                    "op": "orchestrator.execute",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "external_service": getattr(exc, "service", None),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return messages.failure_message(str(exc))
        except Exception as exc:
            logger.exception(
                "task pipeline crashed",
                extra={
                    "event": "task.pipeline.crashed",
                    "op": "orchestrator.execute",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "error_type": type(exc).__name__,
                },
            )
            return messages.failure_message(messages.UNEXPECTED_FAILURE_CAUSE)

        logger.info(
            "task pipeline succeeded",
            extra={
                "event": "task.pipeline.succeeded",
                "op": "orchestrator.execute",
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return messages.success_message(url)

    async def _run(
        self,
        describe: str,
        project_option: str | None,
        section_option: str | None,
        priority_option: str | None,
    ) -> str:
        if not describe or not describe.strip():
            raise ConfigurationError("Missing required `describe` option.")
        destination, priority = self.resolve(project_option, section_option, priority_option)

        repo_context = await self._search_context(describe)
        task = await self._extraction_provider.extract(describe, priority, repo_context)
        logger.debug(
            "task payload extracted",
            extra={
                "event": "task.payload.extracted",
                "payload_preview": {"title": task.title, "labels": task.labels},
            },
        )
        return await self._task_sink.create_task(task, destination)

    async def _search_context(self, describe: str) -> list[RepoHit]:
        try:
            return await self._context_provider.search(describe)
        except ContextSearchError as exc:
            if self._context_failure_policy != "empty":
                raise
            # 上下文只是增强信息，按配置降级为空列表继续。
            logger.warning(
                "context search degraded to empty",
                extra={
                    "event": "task.context.degraded",
                    "external_service": "github",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return []
