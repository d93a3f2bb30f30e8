"""任务落地适配器：在 Asana 指定项目与分区创建任务并返回规范链接。"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from taskbridge.domain.errors import SinkError
from taskbridge.domain.models import TaskDestination, TaskPayload

logger = logging.getLogger(__name__)


def render_notes(payload: TaskPayload) -> str:
    """任务正文；标签没有对应字段，以尾行形式保留。"""
    if not payload.labels:
        return payload.body
    labels = ", ".join(item for item in payload.labels if item.strip())
    if not labels:
        return payload.body
    return f"{payload.body.rstrip()}\n\nLabels: {labels}"


class AsanaTaskSink:
    """Asana REST 异步客户端封装。"""

    def __init__(
        self,
        *,
        access_token: str | None,
        base_url: str = "https://app.asana.com/api/1.0",
        app_base_url: str = "https://app.asana.com",
        section_placement: str = "membership",
        timeout_seconds: int = 15,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = access_token
        self._app_base_url = app_base_url.rstrip("/")
        self._section_placement = section_placement
        self._closed = False
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
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
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """发送请求并返回 data 字段；任何失败统一转为 SinkError。"""
        started = time.perf_counter()
        try:
            response = await self._client.request(method, path, json=json_body, params=params)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            status_code = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            logger.error(
                "asana request failed",
                extra={
                    "event": "asana.request.failed",
                    "external_service": "asana",
                    "op": op,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "status_code": status_code,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            if status_code is not None:
                raise SinkError(f"Asana {op} failed with HTTP {status_code}") from exc
            raise SinkError(f"Asana {op} failed: {type(exc).__name__}") from exc
        data = body.get("data") if isinstance(body, dict) else None
        return data if isinstance(data, (dict, list)) else {}

    async def resolve_section(self, project_gid: str, section_ref: str) -> str:
        """分区引用为数字 ID 时直接使用，否则按名称（忽略大小写）在项目内查找。"""
        if section_ref.isdigit():
            return section_ref
        sections = await self._request(
            method="GET",
            path=f"/projects/{project_gid}/sections",
            op="sections.list",
            params={"opt_fields": "name"},
        )
        wanted = section_ref.strip().casefold()
        for section in sections if isinstance(sections, list) else []:
            if isinstance(section, dict) and str(section.get("name", "")).strip().casefold() == wanted:
                gid = section.get("gid")
                if gid:
                    return str(gid)
        raise SinkError(f"Asana section not found in project: {section_ref}")

    async def create_task(self, payload: TaskPayload, destination: TaskDestination) -> str:
        if not self._access_token:
            raise SinkError("Asana access token is not configured")
        project_gid = destination.project_gid
        section_gid = await self.resolve_section(project_gid, destination.section_ref)

        task_data: dict[str, Any] = {
            "name": payload.title,
            "notes": render_notes(payload),
            "projects": [project_gid],
        }
        if self._section_placement == "membership":
            # 创建时直接放入分区，一次调用完成。
            task_data["memberships"] = [{"project": project_gid, "section": section_gid}]

        started = time.perf_counter()
        task = await self._request(method="POST", path="/tasks", op="tasks.create", json_body={"data": task_data})
        task_gid = task.get("gid") if isinstance(task, dict) else None
        if not task_gid:
            raise SinkError("Asana task creation returned no task gid")

        if self._section_placement == "add_task":
            await self._request(
                method="POST",
                path=f"/sections/{section_gid}/addTask",
                op="sections.add_task",
                json_body={"data": {"task": str(task_gid)}},
            )

        url = f"{self._app_base_url}/0/{project_gid}/{task_gid}"
        logger.info(
            "asana task created",
            extra={
                "event": "asana.task.created",
                "external_service": "asana",
                "op": "tasks.create",
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "payload_preview": {"task_gid": str(task_gid), "placement": self._section_placement},
            },
        )
        return url
