from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import time
import uuid
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .bridge import SSRBridge
from .config import MODULE_KINDS, SSRConfig, get_config, parse_module_kind
from .errors import SSRError
from .loader import ModuleCache
from .log import configure_logging, log_json
from .models import PagePayload

DEFAULT_PORT = 13714

_STATUS_BY_CODE = {
    "MODULE_NOT_FOUND": 500,
    "INVALID_MODULE_SHAPE": 500,
    "MODULE_LOAD_FAILED": 500,
    "RENDER_THREW": 500,
    "INVALID_RENDER_OUTPUT": 502,
    "RENDER_TIMED_OUT": 504,
}


def _get_version() -> str:
    try:
        return version("ssr-bridge")
    except PackageNotFoundError:
        return "unknown"


def status_for_error(exc: SSRError) -> int:
    return _STATUS_BY_CODE.get(exc.code, 500)


def create_app(config: SSRConfig | None = None, *, cache: ModuleCache | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        bridge = SSRBridge(config or get_config(), cache=cache)
        app.state.bridge = bridge
        app.state.start_time = time.monotonic()
        if bridge.config.preload:
            bridge.handle()
        log_json(
            logging.INFO,
            "ssr.server.started",
            version=_get_version(),
            module=bridge.config.module_path,
            module_kind=bridge.config.module_kind,
        )
        yield

    app = FastAPI(title="SSR Bridge", lifespan=lifespan)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get("x-request-id", "").strip() or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            latency_ms = int((time.monotonic() - start) * 1000)
            log_json(
                logging.ERROR,
                "request.failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                latency_ms=latency_ms,
            )
            raise
        latency_ms = int((time.monotonic() - start) * 1000)
        response.headers["x-request-id"] = request_id
        log_json(
            logging.INFO,
            "request.completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return response

    @app.exception_handler(SSRError)
    async def ssr_error_handler(request: Request, exc: SSRError) -> JSONResponse:
        return JSONResponse(status_code=status_for_error(exc), content=exc.to_dict())

    @app.get("/health")
    async def health(request: Request) -> dict[str, bool]:
        bridge: SSRBridge = request.app.state.bridge
        return {"ok": True, "module_loaded": bridge.module_loaded}

    @app.post("/render")
    async def render(request: Request) -> Any:
        try:
            page = PagePayload.from_mapping(await request.json())
        except ValueError as exc:
            return JSONResponse(
                status_code=400,
                content={"error": "INVALID_PAGE", "message": str(exc)},
            )
        bridge: SSRBridge = request.app.state.bridge
        result = await bridge.render(page)
        return result.to_dict()

    return app


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    if args.command == "serve":
        if args.module:
            os.environ["SSR_BRIDGE_MODULE_PATH"] = args.module
        if args.module_kind:
            os.environ["SSR_BRIDGE_MODULE_KIND"] = args.module_kind
        app = create_app()
        uvicorn.run(app, host=args.host, port=args.port, reload=False)
        return
    raise SystemExit(_render_once(args))


def _render_once(args: argparse.Namespace) -> int:
    try:
        if args.module:
            config = SSRConfig(module_path=args.module, module_kind=parse_module_kind(args.module_kind))
        else:
            config = get_config()
    except (OSError, ValueError) as exc:
        print(json.dumps({"error": "INVALID_CONFIG", "message": str(exc)}), file=sys.stderr)
        return 1
    try:
        if args.page:
            raw_page = Path(args.page).read_text(encoding="utf-8")
        else:
            raw_page = sys.stdin.read()
    except (OSError, ValueError) as exc:
        print(json.dumps({"error": "INVALID_PAGE", "message": str(exc)}), file=sys.stderr)
        return 1
    try:
        page = PagePayload.from_mapping(json.loads(raw_page))
    except ValueError as exc:
        print(json.dumps({"error": "INVALID_PAGE", "message": str(exc)}), file=sys.stderr)
        return 1
    try:
        result = asyncio.run(SSRBridge(config).render(page))
    except SSRError as exc:
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        return 1
    print(json.dumps(result.to_dict()))
    return 0


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ssr-bridge")
    sub = parser.add_subparsers(dest="command", required=True)
    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)
    serve.add_argument("--module", default=None)
    serve.add_argument("--module-kind", choices=MODULE_KINDS, default=None)
    render = sub.add_parser("render")
    render.add_argument("--module", default=None)
    render.add_argument("--module-kind", choices=MODULE_KINDS, default=None)
    render.add_argument("--page", default=None, help="page JSON file; stdin when omitted")
    return parser.parse_args(argv)


app = create_app()
