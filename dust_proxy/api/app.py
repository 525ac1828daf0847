"""HTTP 入口：FastAPI 应用。

只负责路由、CORS 头与请求体解析，业务逻辑全部在 api.service 中。
"""

import asyncio
import threading

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import MutableHeaders

from dust_proxy.api import service

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

DISCONNECT_CHECK_INTERVAL = 0.5


class CorsHeadersMiddleware:
    """给每个响应附加 CORS 头（包括错误响应）。"""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_cors(message):
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.update(CORS_HEADERS)
            await send(message)

        await self.app(scope, receive, send_with_cors)


app = FastAPI(title="Dust Figma Proxy", version="1.0.0")
app.add_middleware(CorsHeadersMiddleware)


async def watch_disconnect(request: Request, disconnected: threading.Event) -> None:
    """调用方断开后设置 disconnected，让线程池中的解析尽快停止。"""

    while not disconnected.is_set():
        if await request.is_disconnected():
            disconnected.set()
            return
        await asyncio.sleep(DISCONNECT_CHECK_INTERVAL)


@app.get("/")
async def root():
    return {"status": "ok", "message": "Dust Figma Proxy is running"}


@app.options("/{path:path}")
async def preflight(path: str) -> Response:
    return Response(status_code=200)


@app.post("/api/proxy")
async def proxy(request: Request) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        body = None
    disconnected = threading.Event()
    watcher = asyncio.create_task(watch_disconnect(request, disconnected))
    try:
        # 轮询期间会阻塞等待，放到线程池中执行；断开时 sleep 立即返回
        status_code, payload = await run_in_threadpool(
            service.handle_proxy_request,
            body,
            sleep=disconnected.wait,
            cancelled=disconnected.is_set,
        )
    finally:
        watcher.cancel()
    return JSONResponse(status_code=status_code, content=payload)


@app.api_route("/api/proxy", methods=["GET", "PUT", "PATCH", "DELETE"])
async def method_not_allowed() -> JSONResponse:
    return JSONResponse(status_code=405, content={"error": "Method not allowed"})
