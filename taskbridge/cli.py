"""命令行入口：webhook 服务、常连接网关与命令注册。"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn

from taskbridge.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _serve(settings: Settings, args: argparse.Namespace) -> int:
    # 日志由应用模块导入时初始化，uvicorn 不再覆盖全局配置。
    uvicorn.run(
        "taskbridge.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_config=None,
    )
    return 0


async def _run_gateway(settings: Settings, host: str, port: int) -> None:
    from taskbridge.application.container import get_task_orchestrator, shutdown_container_resources
    from taskbridge.gateway.bot import TaskCommandGateway
    from taskbridge.gateway.health import build_health_app

    client = TaskCommandGateway(settings=settings, orchestrator=get_task_orchestrator()).build_client()
    health_server = uvicorn.Server(uvicorn.Config(build_health_app(), host=host, port=port, log_config=None))
    logger.info(
        "gateway starting",
        extra={"event": "gateway.startup.started", "payload_preview": {"host": host, "port": port}},
    )
    try:
        await asyncio.gather(client.start(settings.discord_bot_token or ""), health_server.serve())
    finally:
        await client.close()
        await shutdown_container_resources()


def _gateway(settings: Settings, args: argparse.Namespace) -> int:
    from taskbridge.infra.logging.setup import configure_logging, shutdown_logging

    if not settings.discord_bot_token:
        print("DISCORD_BOT_TOKEN is required for gateway mode", file=sys.stderr)
        return 2
    configure_logging(settings, process_role="gateway")
    try:
        asyncio.run(_run_gateway(settings, args.host or settings.host, args.port or settings.port))
    except KeyboardInterrupt:
        pass
    finally:
        shutdown_logging()
    return 0


async def _register(settings: Settings) -> int:
    from taskbridge.domain.commands import build_task_command
    from taskbridge.domain.errors import DeliveryError
    from taskbridge.infra.chat.client import DiscordInteractionClient

    client = DiscordInteractionClient(
        base_url=settings.discord_api_base_url,
        bot_token=settings.discord_bot_token,
        timeout_seconds=settings.discord_request_timeout_seconds,
    )
    try:
        registered = await client.register_commands(
            settings.discord_application_id,
            [build_task_command(settings.discord_command_name)],
        )
    except DeliveryError as exc:
        print(f"Command registration failed: {exc}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()
    print(f"Commands registered: {', '.join(str(item.get('name')) for item in registered)}")
    return 0


def _register_commands(settings: Settings, _args: argparse.Namespace) -> int:
    if not settings.discord_application_id or not settings.discord_bot_token:
        print("DISCORD_APPLICATION_ID and DISCORD_BOT_TOKEN are required", file=sys.stderr)
        return 2
    return asyncio.run(_register(settings))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskbridge", description="Chat command to Asana task bridge")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the signed-webhook interaction endpoint")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(handler=_serve)

    gateway = sub.add_parser("gateway", help="run the persistent-session bot with a health listener")
    gateway.add_argument("--host", default=None)
    gateway.add_argument("--port", type=int, default=None)
    gateway.set_defaults(handler=_gateway)

    register = sub.add_parser("register-commands", help="register the slash command globally")
    register.set_defaults(handler=_register_commands)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.handler(get_settings(), args)


if __name__ == "__main__":
    sys.exit(main())
