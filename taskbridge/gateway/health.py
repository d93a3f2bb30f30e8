"""常连接模式下的存活探针：任意 GET 路径返回纯文本 ok。"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse


def build_health_app() -> FastAPI:
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/{path:path}", response_class=PlainTextResponse)
    def liveness(path: str = "") -> str:
        return "ok"

    return app
