"""全局配置加载模块：从环境变量构建运行参数并提供缓存访问。"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from taskbridge.domain.models import TaskDestination


def _csv_to_list(value: str) -> list[str]:
    """将逗号分隔字符串转换为去空白列表。"""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """系统运行配置对象，从环境变量读取并提供类型化访问。"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "Task Bridge"
    environment: str = "dev"
    host: str = "0.0.0.0"
    port: int = 8080

    discord_public_key: str = ""
    discord_application_id: str = ""
    discord_bot_token: str | None = None
    discord_api_base_url: str = "https://discord.com/api/v10"
    discord_command_name: str = "task"
    discord_request_timeout_seconds: int = 10
    discord_sync_commands_on_ready: bool = False

    # 目标位置默认值允许为空，缺失只在单次调用解析时报错。
    asana_project_gid: str = ""
    asana_section_gid: str = ""
    default_priority: str = "p2"

    asana_access_token: str | None = None
    asana_api_base_url: str = "https://app.asana.com/api/1.0"
    asana_app_base_url: str = "https://app.asana.com"
    asana_section_placement: Literal["membership", "add_task"] = "membership"
    asana_request_timeout_seconds: int = 15

    github_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GITHUB_INSTALLATION_TOKEN", "GITHUB_TOKEN", "github_token"),
    )
    github_api_base_url: str = "https://api.github.com"
    github_search_org: str = ""
    github_search_languages: str = "ts,py"
    github_request_timeout_seconds: int = 10
    context_top_k: int = 5
    context_failure_policy: Literal["fail", "empty"] = "fail"

    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_model: str = "gpt-4.1-mini"
    openai_timeout_seconds: int = 30

    log_dir: Path = Field(default=Path("./logs"))
    log_level: str = "INFO"
    log_debug_modules: str = ""
    log_debug_interaction_ids: str = ""
    log_redaction_mode: Literal["off", "standard", "strict"] = "standard"
    log_payload_preview_chars: int = 512
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    def github_search_languages_list(self) -> list[str]:
        return _csv_to_list(self.github_search_languages)

    def log_debug_modules_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_modules)

    def log_debug_interaction_ids_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_interaction_ids)

    def destination_defaults(self) -> TaskDestination:
        """返回进程级默认投递位置，字段可能为空字符串。"""
        return TaskDestination(
            project_gid=self.asana_project_gid.strip(),
            section_ref=self.asana_section_gid.strip(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """构建并缓存 Settings，启动后只读。"""
    return Settings()
