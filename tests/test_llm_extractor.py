"""结构化提取测试：提示词构造、schema 约束与模型输出校验。"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from taskbridge.domain.errors import ExtractionError
from taskbridge.domain.models import RepoHit
from taskbridge.infra.llm.extractor import (
    SYSTEM_PROMPT,
    TASK_PAYLOAD_SCHEMA,
    OpenAITaskExtractor,
    build_user_prompt,
    parse_task_payload,
)

_HITS = [
    RepoHit(repo="acme/web", path="a.ts", url="https://github.com/acme/web/blob/main/a.ts", digest="login()"),
    RepoHit(repo="acme/web", path="b.ts", url="https://github.com/acme/web/blob/main/b.ts"),
]


class _FakeCompletions:
    def __init__(self, content: str | None, refusal: str | None = None, choices: bool = True) -> None:
        self.calls: list[dict] = []
        self._content = content
        self._refusal = refusal
        self._choices = choices

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if not self._choices:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self._content, refusal=self._refusal)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _extractor(completions: _FakeCompletions) -> OpenAITaskExtractor:
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAITaskExtractor(client, "gpt-4.1-mini")


def test_user_prompt_lists_context_urls_with_digests() -> None:
    prompt = build_user_prompt("Fix login bug", "p1", _HITS)

    assert prompt == (
        "Text: Fix login bug\n"
        "Priority: p1\n"
        "Context:\n"
        "https://github.com/acme/web/blob/main/a.ts (login())\n"
        "https://github.com/acme/web/blob/main/b.ts"
    )


def test_extract_requests_strict_json_schema_and_returns_payload() -> None:
    """请求应携带严格 schema，合法输出解析为 TaskPayload。"""
    completions = _FakeCompletions('{"title": " Fix login ", "body": "Details", "labels": ["auth"]}')

    payload = asyncio.run(_extractor(completions).extract("Fix login bug", "p2", _HITS))

    assert payload.title == "Fix login"
    assert payload.body == "Details"
    assert payload.labels == ["auth"]
    call = completions.calls[0]
    assert call["model"] == "gpt-4.1-mini"
    assert call["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert call["response_format"] == {"type": "json_schema", "json_schema": TASK_PAYLOAD_SCHEMA}
    assert TASK_PAYLOAD_SCHEMA["schema"]["required"] == ["title", "body", "labels"]
    assert TASK_PAYLOAD_SCHEMA["schema"]["additionalProperties"] is False


def test_null_labels_are_accepted() -> None:
    payload = parse_task_payload('{"title": "t", "body": "b", "labels": null}')

    assert payload.labels is None


@pytest.mark.parametrize(
    ("content", "fragment"),
    [
        (None, "empty"),
        ("", "empty"),
        ("not json", "unparseable JSON"),
        ('{"body": "b", "labels": null}', "schema validation at title"),
        ('{"title": "  ", "body": "b", "labels": null}', "schema validation at title"),
        ('{"title": "t", "body": "b", "labels": null, "extra": 1}', "schema validation at extra"),
    ],
)
def test_invalid_model_output_raises(content: str | None, fragment: str) -> None:
    with pytest.raises(ExtractionError) as exc_info:
        parse_task_payload(content)

    assert fragment in str(exc_info.value)


def test_refusal_raises_extraction_error() -> None:
    completions = _FakeCompletions(None, refusal="cannot help")

    with pytest.raises(ExtractionError, match="refused"):
        asyncio.run(_extractor(completions).extract("Fix", "p2", []))


def test_no_choices_raises_extraction_error() -> None:
    completions = _FakeCompletions(None, choices=False)

    with pytest.raises(ExtractionError, match="no choices"):
        asyncio.run(_extractor(completions).extract("Fix", "p2", []))
