"""代码检索适配器：调用 GitHub 代码搜索，返回有限条数的仓库命中。"""

from __future__ import annotations

import logging
import re
import time
from typing import Any

import httpx

from taskbridge.domain.errors import ContextSearchError
from taskbridge.domain.models import RepoHit

logger = logging.getLogger(__name__)

_DIGEST_CHARS = 200
_WHITESPACE = re.compile(r"\s+")


class GitHubCodeSearch:
    """GitHub 代码搜索异步客户端封装。"""

    def __init__(
        self,
        *,
        base_url: str = "https://api.github.com",
        token: str | None = None,
        org: str = "",
        languages: list[str] | None = None,
        top_k: int = 5,
        timeout_seconds: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._org = org.strip()
        self._languages = list(languages or [])
        self._top_k = max(1, int(top_k))
        self._closed = False
        headers = {
            # text-match 元数据提供片段摘要。
            "Accept": "application/vnd.github.text-match+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "taskbridge",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
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

    def build_query(self, text: str) -> str:
        """拼接检索限定符；按组织实际情况调整。"""
        parts = [text.strip()]
        if self._org:
            parts.append(f"org:{self._org}")
        parts.append("in:file")
        if self._languages:
            parts.append(" OR ".join(f"language:{item}" for item in self._languages))
        return " ".join(parts)

    async def search(self, query: str) -> list[RepoHit]:
        if not query.strip():
            return []
        q = self.build_query(query)
        started = time.perf_counter()
        try:
            response = await self._client.get("/search/code", params={"q": q, "per_page": self._top_k})
            response.raise_for_status()
            items = response.json().get("items")
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            status_code = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            logger.error(
                "github code search failed",
                extra={
                    "event": "github.search.failed",
                    "external_service": "github",
                    "op": "search.code",
                    "duration_ms": duration_ms,
                    "status_code": status_code,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            if status_code is not None:
                raise ContextSearchError(f"GitHub code search failed with HTTP {status_code}") from exc
            raise ContextSearchError(f"GitHub code search failed: {type(exc).__name__}") from exc
        if not isinstance(items, list):
            raise ContextSearchError("GitHub code search returned an unexpected response")
        hits = [hit for hit in (self._to_hit(item) for item in items[: self._top_k]) if hit is not None]
        logger.info(
            "github code search completed",
            extra={
                "event": "github.search.succeeded",
                "external_service": "github",
                "op": "search.code",
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "payload_preview": {"hits": len(hits)},
            },
        )
        return hits

    @staticmethod
    def _to_hit(item: Any) -> RepoHit | None:
        if not isinstance(item, dict):
            return None
        repository = item.get("repository") or {}
        repo = repository.get("full_name") if isinstance(repository, dict) else None
        path = item.get("path")
        url = item.get("html_url")
        if not (repo and path and url):
            return None
        return RepoHit(repo=str(repo), path=str(path), url=str(url), digest=_digest(item.get("text_matches")))


def _digest(text_matches: Any) -> str | None:
    if not isinstance(text_matches, list):
        return None
    for match in text_matches:
        fragment = match.get("fragment") if isinstance(match, dict) else None
        if isinstance(fragment, str) and fragment.strip():
            text = _WHITESPACE.sub(" ", fragment).strip()
            return text if len(text) <= _DIGEST_CHARS else text[: _DIGEST_CHARS - 1] + "…"
    return None
