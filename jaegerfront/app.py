"""The web application: Jaeger API routes plus the static UI as fallback."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocketClose

from . import api
from .api import TraceReader
from .models import ApiResponse
from .static import static_file_service

log = logging.getLogger(__name__)


def _json(response: ApiResponse) -> JSONResponse:
    return JSONResponse(response.to_dict())


def _bad_query(message: str) -> PlainTextResponse:
    return PlainTextResponse(f"Failed to deserialize query string: {message}", status_code=400)


def create_app(reader: TraceReader, static_root: Union[str, Path]) -> Starlette:
    """Build the application answering the Jaeger API from ``reader``.

    Any request that matches no API route is answered from the files below
    ``static_root``.
    """
    static = static_file_service(static_root)

    async def services(request: Request) -> Response:
        return _json(await api.get_services(reader))

    async def operations(request: Request) -> Response:
        service = request.query_params.get("service")
        if service is None:
            return _bad_query("missing field `service`")
        span_kind = request.query_params.get("spanKind")
        return _json(await api.get_operations(reader, service, span_kind))

    async def service_operations(request: Request) -> Response:
        service = request.path_params["service"]
        span_kind = request.query_params.get("spanKind")
        return _json(await api.get_service_operations(reader, service, span_kind))

    async def traces(request: Request) -> Response:
        try:
            result = await api.get_traces(reader, dict(request.query_params))
        except ValueError as exc:
            return _bad_query(str(exc))
        return _json(result)

    async def trace(request: Request) -> Response:
        return _json(await api.get_trace(reader, request.path_params["trace_id"]))

    async def dependencies(request: Request) -> Response:
        return _json(await api.get_dependencies(dict(request.query_params)))

    async def archived_trace(request: Request) -> Response:
        return _json(await api.get_archived_trace(reader, request.path_params["trace_id"]))

    async def static_fallback(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await WebSocketClose()(scope, receive, send)
            return
        result = static.handle_request(scope["path"])
        response = Response(
            content=result.body,
            status_code=int(result.status),
            headers={"content-type": result.content_type},
        )
        await response(scope, receive, send)

    routes = [
        Route("/api/services", services, methods=["GET"]),
        Route("/api/services/{service}/operations", service_operations, methods=["GET"]),
        Route("/api/operations", operations, methods=["GET"]),
        Route("/api/traces", traces, methods=["GET"]),
        Route("/api/traces/{trace_id}", trace, methods=["GET"]),
        Route("/api/dependencies", dependencies, methods=["GET"]),
        Route("/api/archive/{trace_id}", archived_trace, methods=["GET"]),
    ]
    app = Starlette(routes=routes)
    app.router.default = static_fallback
    app.state.reader = reader
    return app