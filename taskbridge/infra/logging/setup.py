"""日志初始化：统一 JSON 结构、异步队列写入与 DEBUG 路由开关。"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import SimpleQueue
from typing import Any

from taskbridge.config import Settings
from taskbridge.infra.logging.context import CONTEXT_KEYS, get_log_context

_listener: QueueListener | None = None

_SENSITIVE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?i)(authorization\s*[:=]\s*(?:bearer|bot)\s+)[^\s,;]+"), r"\1***"),
    (re.compile(r"(?i)((?:x-)?api[_-]?key\s*[:=]\s*)[^\s,;]+"), r"\1***"),
    (re.compile(r"(?i)((?:password|token|secret)\s*[:=]\s*)[^\s,;]+"), r"\1***"),
    # 交互 token 出现在回执编辑 URL 路径中：/webhooks/{application_id}/{token}/...
    (re.compile(r"(/webhooks/[^/\s]+/)[^/\s\"']+"), r"\1***"),
)
_STRICT_PATTERN = re.compile(r"(?i)(authorization|password|token|secret)([^,\s}]*)")

# 通过 logger extra 传入的结构化字段。
_EXTRA_FIELDS = ("event", "external_service", "op", "error_type")
_NUMERIC_FIELDS = ("duration_ms", "status_code")

# 第三方库默认降噪，避免业务日志被淹没。
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "openai", "discord")


def redact_text(value: str | None, mode: str) -> str | None:
    """按模式脱敏文本，避免凭据和交互 token 落盘。"""
    if value is None:
        return None
    text = str(value)
    mode = mode.lower()
    if mode == "off":
        return text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    if mode == "strict":
        text = _STRICT_PATTERN.sub(r"\1=***", text)
    return text


def render_payload_preview(payload: Any, *, max_chars: int, redaction_mode: str) -> str | None:
    """将 payload 转为截断后的预览文本，避免写入大对象。"""
    if payload is None:
        return None
    if isinstance(payload, str):
        serialized = payload
    else:
        serialized = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)
    redacted = redact_text(serialized, redaction_mode) or ""
    if len(redacted) > max_chars:
        return f"{redacted[:max_chars]}...(truncated)"
    return redacted


class DebugRoutingFilter(logging.Filter):
    """控制默认日志级别，并允许指定模块/interaction_id 放行 DEBUG。"""

    def __init__(self, *, min_level: int, debug_modules: set[str], debug_interaction_ids: set[str]) -> None:
        super().__init__()
        self._min_level = min_level
        self._debug_modules = debug_modules
        self._debug_interaction_ids = debug_interaction_ids

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= self._min_level:
            return True
        if record.levelno != logging.DEBUG:
            return False
        if any(record.name == item or record.name.startswith(f"{item}.") for item in self._debug_modules):
            return True
        interaction_id = getattr(record, "interaction_id", None) or get_log_context().get("interaction_id")
        return bool(interaction_id) and interaction_id in self._debug_interaction_ids


class ContextInjectionFilter(logging.Filter):
    """在日志入队前将 contextvars 写入 record，避免跨线程丢失。"""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_log_context()
        for key in CONTEXT_KEYS:
            if getattr(record, key, None) is None and ctx.get(key) is not None:
                setattr(record, key, ctx[key])
        return True


class StructuredJsonFormatter(logging.Formatter):
    """将 LogRecord 规整为统一 JSON 行格式。"""

    def __init__(
        self,
        *,
        service: str,
        process_role: str,
        redaction_mode: str,
        payload_preview_chars: int,
    ) -> None:
        super().__init__()
        self._service = service
        self._process_role = process_role
        self._redaction_mode = redaction_mode
        self._payload_preview_chars = payload_preview_chars

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self._service,
            "process_role": self._process_role,
            "module": record.name,
        }
        for key in CONTEXT_KEYS:
            entry[key] = getattr(record, key, None) or ctx.get(key)
        for key in _EXTRA_FIELDS:
            entry[key] = getattr(record, key, None)
        for key in _NUMERIC_FIELDS:
            value = getattr(record, key, None)
            entry[key] = value if isinstance(value, (int, float)) and not isinstance(value, bool) else None

        error_text = getattr(record, "error", None)
        if error_text is None and record.exc_info:
            error_text = self.formatException(record.exc_info)
        entry["message"] = redact_text(record.getMessage(), self._redaction_mode)
        entry["error"] = redact_text(str(error_text), self._redaction_mode) if error_text is not None else None
        entry["payload_preview"] = render_payload_preview(
            getattr(record, "payload_preview", None),
            max_chars=self._payload_preview_chars,
            redaction_mode=self._redaction_mode,
        )
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(settings: Settings, *, process_role: str) -> Path:
    """初始化全局日志输出：root 只挂队列处理器，监听线程写 JSONL 文件并将 ERROR 同步到 stderr。"""
    global _listener
    shutdown_logging()

    log_root = settings.log_dir if settings.log_dir.is_absolute() else (Path.cwd() / settings.log_dir).resolve()
    log_file = log_root / process_role / "taskbridge.jsonl"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    queue_obj: SimpleQueue[logging.LogRecord] = SimpleQueue()
    queue_handler = QueueHandler(queue_obj)
    queue_handler.addFilter(ContextInjectionFilter())
    queue_handler.addFilter(
        DebugRoutingFilter(
            min_level=getattr(logging, settings.log_level.upper(), logging.INFO),
            debug_modules=set(settings.log_debug_modules_list()),
            debug_interaction_ids=set(settings.log_debug_interaction_ids_list()),
        )
    )
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.addHandler(queue_handler)
    root_logger.setLevel(logging.DEBUG)

    formatter = StructuredJsonFormatter(
        service="taskbridge",
        process_role=process_role,
        redaction_mode=settings.log_redaction_mode,
        payload_preview_chars=settings.log_payload_preview_chars,
    )
    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    for handler in (file_handler, stderr_handler):
        handler.setFormatter(formatter)

    _listener = QueueListener(queue_obj, file_handler, stderr_handler, respect_handler_level=True)
    _listener.start()

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_file


def shutdown_logging() -> None:
    """停止队列监听器，刷新并关闭文件句柄。"""
    global _listener
    listener, _listener = _listener, None
    if listener is None:
        return
    listener.stop()
    for handler in listener.handlers:
        try:
            handler.close()
        except OSError:
            pass
