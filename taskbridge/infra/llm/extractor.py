"""结构化提取适配器：约束生成模型输出固定 schema 的任务载荷。"""

from __future__ import annotations

import logging
import time
from typing import Any

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from taskbridge.domain.errors import ExtractionError
from taskbridge.domain.models import RepoHit, TaskPayload

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Return a concise task derived from the user text. "
    "Use provided repo links as references only."
)

# strict 模式要求列出全部字段，labels 通过 null 表示缺省。
TASK_PAYLOAD_SCHEMA: dict[str, Any] = {
    "name": "task_payload",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "title": {"type": "string"},
            "body": {"type": "string"},
            "labels": {"type": ["array", "null"], "items": {"type": "string"}},
        },
        "required": ["title", "body", "labels"],
        "additionalProperties": False,
    },
}


def build_user_prompt(describe: str, priority: str, repo_context: list[RepoHit]) -> str:
    lines = []
    for hit in repo_context:
        lines.append(f"{hit.url} ({hit.digest})" if hit.digest else hit.url)
    return f"Text: {describe}\nPriority: {priority}\nContext:\n" + "\n".join(lines)


def parse_task_payload(content: str | None) -> TaskPayload:
    """解析并校验模型输出；不合约时抛出 ExtractionError，不返回部分结果。"""
    if not content or not content.strip():
        raise ExtractionError("model returned an empty task payload")
    try:
        return TaskPayload.model_validate_json(content)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        if first.get("type") == "json_invalid":
            raise ExtractionError("model returned unparseable JSON") from exc
        location = ".".join(str(item) for item in first.get("loc", ())) or "payload"
        raise ExtractionError(f"model output failed schema validation at {location}") from exc


class OpenAITaskExtractor:
    """基于 Chat Completions json_schema 输出格式的任务提取器。"""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self._client = client
        self._model = model

    @classmethod
    def from_credentials(
        cls,
        *,
        api_key: str | None,
        model: str,
        base_url: str | None = None,
        timeout_seconds: int = 30,
    ) -> "OpenAITaskExtractor":
        # 缺少密钥时不在构造阶段失败，由首次调用返回鉴权错误。
        client = AsyncOpenAI(api_key=api_key or "", base_url=base_url, timeout=timeout_seconds)
        return cls(client, model)

    async def aclose(self) -> None:
        await self._client.close()

    async def extract(self, describe: str, priority: str, repo_context: list[RepoHit]) -> TaskPayload:
        prompt = build_user_prompt(describe, priority, repo_context)
        started = time.perf_counter()
        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_schema", "json_schema": TASK_PAYLOAD_SCHEMA},
            )
        except openai.OpenAIError as exc:
            logger.error(
                "openai extraction request failed",
                extra={
                    "event": "openai.extract.failed",
                    "external_service": "openai",
                    "op": "chat.completions.create",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "status_code": getattr(exc, "status_code", None),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise ExtractionError(f"model request failed: {type(exc).__name__}") from exc

        if not completion.choices:
            raise ExtractionError("model returned no choices")
        message = completion.choices[0].message
        if getattr(message, "refusal", None):
            raise ExtractionError(f"model refused the request: {message.refusal}")
        payload = parse_task_payload(message.content)
        logger.info(
            "openai extraction completed",
            extra={
                "event": "openai.extract.succeeded",
                "external_service": "openai",
                "op": "chat.completions.create",
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "payload_preview": {"prompt_chars": len(prompt), "title_chars": len(payload.title)},
            },
        )
        return payload
