"""依赖容器模块，负责单例化创建下游客户端与应用服务对象。"""

from __future__ import annotations

import logging
from functools import lru_cache

from taskbridge.application.orchestrator import TaskOrchestrator
from taskbridge.application.responder import WebhookResponder
from taskbridge.config import get_settings
from taskbridge.infra.asana.sink import AsanaTaskSink
from taskbridge.infra.chat.client import DiscordInteractionClient
from taskbridge.infra.github.code_search import GitHubCodeSearch
from taskbridge.infra.llm.extractor import OpenAITaskExtractor
from taskbridge.infra.security.signature import SignatureVerifier

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_signature_verifier() -> SignatureVerifier:
    """获取请求签名校验器单例。"""
    return SignatureVerifier(get_settings().discord_public_key)


@lru_cache(maxsize=1)
def get_context_provider() -> GitHubCodeSearch:
    """获取代码检索客户端单例。"""
    settings = get_settings()
    return GitHubCodeSearch(
        base_url=settings.github_api_base_url,
        token=settings.github_token,
        org=settings.github_search_org,
        languages=settings.github_search_languages_list(),
        top_k=settings.context_top_k,
        timeout_seconds=settings.github_request_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_extraction_provider() -> OpenAITaskExtractor:
    """获取结构化提取客户端单例。"""
    settings = get_settings()
    return OpenAITaskExtractor.from_credentials(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.openai_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_task_sink() -> AsanaTaskSink:
    """获取任务落地客户端单例。"""
    settings = get_settings()
    return AsanaTaskSink(
        access_token=settings.asana_access_token,
        base_url=settings.asana_api_base_url,
        app_base_url=settings.asana_app_base_url,
        section_placement=settings.asana_section_placement,
        timeout_seconds=settings.asana_request_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_interaction_client() -> DiscordInteractionClient:
    """获取交互回执客户端单例。"""
    settings = get_settings()
    return DiscordInteractionClient(
        base_url=settings.discord_api_base_url,
        bot_token=settings.discord_bot_token,
        timeout_seconds=settings.discord_request_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_task_orchestrator() -> TaskOrchestrator:
    """获取任务编排服务单例。"""
    settings = get_settings()
    return TaskOrchestrator(
        context_provider=get_context_provider(),
        extraction_provider=get_extraction_provider(),
        task_sink=get_task_sink(),
        default_destination=settings.destination_defaults(),
        default_priority=settings.default_priority,
        context_failure_policy=settings.context_failure_policy,
    )


@lru_cache(maxsize=1)
def get_webhook_responder() -> WebhookResponder:
    """获取 webhook 模式回执器单例。"""
    return WebhookResponder(orchestrator=get_task_orchestrator(), client=get_interaction_client())


async def shutdown_container_resources() -> None:
    """关闭共享客户端并清理依赖容器缓存。"""
    for provider in (get_context_provider, get_extraction_provider, get_task_sink, get_interaction_client):
        if not provider.cache_info().currsize:
            continue
        try:
            await provider().aclose()
        except Exception as exc:
            logger.warning(
                "client close failed",
                extra={"event": "container.shutdown.failed", "error_type": type(exc).__name__, "error": str(exc)},
            )

    # 按依赖顺序清理缓存，确保后续请求可重新构建全新实例。
    for provider in (
        get_webhook_responder,
        get_task_orchestrator,
        get_interaction_client,
        get_task_sink,
        get_extraction_provider,
        get_context_provider,
        get_signature_verifier,
    ):
        provider.cache_clear()
