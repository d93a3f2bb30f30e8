"""交互入口：验签、解码，并在确认窗口内返回同步响应或延迟确认。"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse

from taskbridge.application.container import get_signature_verifier, get_webhook_responder
from taskbridge.application.responder import WebhookResponder, deferred_ack, immediate_message, pong_response
from taskbridge.config import get_settings
from taskbridge.domain import messages
from taskbridge.domain.enums import InteractionType
from taskbridge.domain.errors import AuthenticationError, MalformedPayload
from taskbridge.domain.models import Interaction
from taskbridge.infra.chat.decoder import decode_interaction
from taskbridge.infra.logging.context import bind_log_context
from taskbridge.infra.security.signature import SignatureVerifier

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature-Ed25519"
TIMESTAMP_HEADER = "X-Signature-Timestamp"

# Ed25519 分离签名固定 64 字节。
_SIGNATURE_RE = re.compile(r"^[0-9a-fA-F]{128}$")


def _verifier() -> SignatureVerifier:
    return get_signature_verifier()


def _responder() -> WebhookResponder:
    return get_webhook_responder()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _signature_headers(request: Request) -> tuple[str, str]:
    signature = (request.headers.get(SIGNATURE_HEADER) or "").strip()
    timestamp = (request.headers.get(TIMESTAMP_HEADER) or "").strip()
    if not timestamp or not _SIGNATURE_RE.match(signature):
        raise AuthenticationError("Invalid request signature")
    return signature, timestamp


@router.post("/interactions")
async def receive_interaction(
    request: Request,
    background_tasks: BackgroundTasks,
    verifier: SignatureVerifier = Depends(_verifier),
    responder: WebhookResponder = Depends(_responder),
) -> JSONResponse:
    """鉴权与载荷错误在任何延迟确认之前短路返回。"""
    try:
        try:
            signature, timestamp = _signature_headers(request)
        except AuthenticationError as exc:
            logger.warning("interaction signature headers missing", extra={"event": "interaction.auth.missing"})
            return _error(401, str(exc))

        body = await request.body()
        if not verifier.verify(body, signature, timestamp):
            logger.warning("interaction signature rejected", extra={"event": "interaction.auth.rejected"})
            return _error(401, "Bad request signature")

        try:
            interaction = decode_interaction(body)
        except MalformedPayload as exc:
            logger.warning(
                "interaction payload rejected",
                extra={"event": "interaction.payload.rejected", "error": str(exc)},
            )
            return _error(400, str(exc))

        with bind_log_context(interaction_id=interaction.id or None, command=interaction.command_name):
            return _dispatch(interaction, background_tasks, responder)
    except Exception as exc:
        logger.exception(
            "interaction handling crashed",
            extra={"event": "interaction.handling.crashed", "error_type": type(exc).__name__},
        )
        return _error(500, "Internal Server Error")


def _dispatch(
    interaction: Interaction,
    background_tasks: BackgroundTasks,
    responder: WebhookResponder,
) -> JSONResponse:
    if interaction.type == InteractionType.ping:
        logger.info("interaction ping answered", extra={"event": "interaction.ping"})
        return JSONResponse(pong_response())

    if interaction.type != InteractionType.application_command:
        return _error(400, "Unsupported interaction type")

    if not interaction.is_chat_input or interaction.command_name != settings.discord_command_name:
        logger.info(
            "interaction command unsupported",
            extra={
                "event": "interaction.command.unsupported",
                "payload_preview": {"command_type": interaction.command_type, "name": interaction.command_name},
            },
        )
        return JSONResponse(immediate_message(messages.UNSUPPORTED_COMMAND_TYPE))

    if not interaction.options.describe:
        logger.info("interaction missing describe", extra={"event": "interaction.command.missing_describe"})
        return JSONResponse(immediate_message(messages.MISSING_DESCRIBE))

    if not interaction.token or not interaction.application_id:
        # 没有 token 就无法编辑原始回复，不进行延迟确认。
        return _error(400, "Missing interaction token")

    background_tasks.add_task(responder.run_deferred, interaction)
    logger.info("interaction deferred", extra={"event": "interaction.deferred"})
    return JSONResponse(deferred_ack())
