"""Jaeger HTTP API operations backed by a trace storage reader."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterable, Mapping, Optional

from .models import (
    ApiResponse,
    Duration,
    JaegerTrace,
    KeyValue,
    ResourceSpans,
    Timestamp,
    convert_to_jaeger_traces,
    parse_duration,
    parse_timestamp,
    parse_trace_id,
    process_resource_spans,
)

log = logging.getLogger(__name__)

DEFAULT_LIMIT = 1000

_SIGNED_RE = re.compile(r"[+-]?[0-9]+")
_UNSIGNED_RE = re.compile(r"\+?[0-9]+")
_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1
_U64_MAX = (1 << 64) - 1
_U32_MAX = (1 << 32) - 1


class BackendError(Exception):
    """Raised by a :class:`TraceReader` when the storage backend call fails."""


@dataclass(frozen=True)
class Operation:
    """An operation known to the storage backend."""

    name: str
    span_kind: str = ""


@dataclass
class TraceQueryParameters:
    """Search criteria sent to the storage backend."""

    service_name: str = ""
    operation_name: str = ""
    attributes: list[KeyValue] = field(default_factory=list)
    start_time_min: Optional[Timestamp] = None
    start_time_max: Optional[Timestamp] = None
    duration_min: Optional[Duration] = None
    duration_max: Optional[Duration] = None
    search_depth: int = 0


@dataclass
class GetTraceParams:
    """Identifies one trace to fetch, optionally bounded in time."""

    trace_id: bytes
    start_time: Optional[Timestamp] = None
    end_time: Optional[Timestamp] = None


TraceStream = AsyncIterator[Iterable[ResourceSpans]]


class TraceReader(ABC):
    """Read access to a trace storage backend.

    Trace queries return a stream of chunks, each an iterable of
    :class:`ResourceSpans`. Failures are reported by raising :class:`BackendError`.
    """

    @abstractmethod
    async def get_services(self) -> list[str]:
        """Return the names of all services that reported spans."""

    @abstractmethod
    async def get_operations(self, service: str, span_kind: str) -> list[Operation]:
        """Return the operations of ``service``, filtered by ``span_kind`` if non-empty."""

    @abstractmethod
    async def find_traces(self, query: TraceQueryParameters) -> TraceStream:
        """Return a stream of chunks of spans matching ``query``."""

    @abstractmethod
    async def get_traces(self, params: list[GetTraceParams]) -> TraceStream:
        """Return a stream of chunks of spans for the requested traces."""


def _parse_bounded(text: Optional[str], pattern: re.Pattern, low: int, high: int) -> Optional[int]:
    if text is None or not pattern.fullmatch(text):
        return None
    number = int(text)
    return number if low <= number <= high else None


def _parse_limit(params: Mapping[str, str]) -> int:
    text = params.get("limit")
    if text is None:
        return DEFAULT_LIMIT
    limit = _parse_bounded(text, _UNSIGNED_RE, 0, _U32_MAX)
    if limit is None:
        raise ValueError(f"invalid limit: {text!r}")
    return limit


def _wrap_i32(number: int) -> int:
    return ((number + (1 << 31)) % (1 << 32)) - (1 << 31)


def parse_traces_query(params: Mapping[str, str]) -> TraceQueryParameters:
    """Build backend search parameters from trace search query parameters.

    Unparseable times and durations are ignored; an invalid ``limit`` raises
    :class:`ValueError`.
    """
    limit = _parse_limit(params)

    start = _parse_bounded(params.get("start"), _SIGNED_RE, _I64_MIN, _I64_MAX)
    end = _parse_bounded(params.get("end"), _SIGNED_RE, _I64_MIN, _I64_MAX)
    min_duration = _parse_bounded(params.get("minDuration"), _UNSIGNED_RE, 0, _U64_MAX)
    max_duration = _parse_bounded(params.get("maxDuration"), _UNSIGNED_RE, 0, _U64_MAX)
    log.debug(
        "parse_traces_query: start=%s end=%s minDuration=%s maxDuration=%s limit=%d",
        start,
        end,
        min_duration,
        max_duration,
        limit,
    )

    return TraceQueryParameters(
        service_name=params.get("service") or "",
        operation_name=params.get("operation") or "",
        attributes=[],
        start_time_min=None if start is None else parse_timestamp(start),
        start_time_max=None if end is None else parse_timestamp(end),
        duration_min=None if min_duration is None else parse_duration(min_duration),
        duration_max=None if max_duration is None else parse_duration(max_duration),
        search_depth=_wrap_i32(limit),
    )


async def _collect(stream: TraceStream, context: str) -> list[ResourceSpans]:
    """Gather resource spans from a stream, stopping quietly at the first failure."""
    collected: list[ResourceSpans] = []
    try:
        async for chunk in stream:
            chunk = list(chunk)
            log.debug("%s: Processing chunk with %d resource spans", context, len(chunk))
            collected.extend(chunk)
    except BackendError as exc:
        log.debug("%s: stream ended with error: %s", context, exc)
    return collected


async def get_services(reader: TraceReader) -> ApiResponse:
    """List every service that reported spans."""
    log.info("get_services: Starting request")
    try:
        services = list(await reader.get_services())
    except BackendError as exc:
        return ApiResponse.from_backend_error(exc, "get_services")
    log.info("get_services: Success - Found %d services", len(services))
    return ApiResponse(data=services, total=len(services), limit=0, offset=0)


async def _operations(
    reader: TraceReader, service: str, span_kind: Optional[str], context: str
) -> ApiResponse:
    try:
        operations = await reader.get_operations(service, span_kind or "")
    except BackendError as exc:
        return ApiResponse.from_backend_error(exc, f"{context} for service '{service}'")
    names = [op.name for op in operations]
    log.info("%s: Success - Found %d operations for service '%s'", context, len(names), service)
    return ApiResponse(data=names, total=len(names), limit=0, offset=0)


async def get_operations(
    reader: TraceReader, service: str, span_kind: Optional[str] = None
) -> ApiResponse:
    """List operation names of a service given as a query parameter."""
    log.info("get_operations: Starting request")
    return await _operations(reader, service, span_kind, "get_operations")


async def get_service_operations(
    reader: TraceReader, service: str, span_kind: Optional[str] = None
) -> ApiResponse:
    """List operation names of a service given in the path."""
    log.info("get_service_operations: Starting request")
    return await _operations(reader, service, span_kind, "get_service_operations")


async def get_traces(reader: TraceReader, params: Mapping[str, str]) -> ApiResponse:
    """Search traces; raises :class:`ValueError` for an invalid ``limit``."""
    log.info("get_traces: Starting request")
    limit = _parse_limit(params)
    query = parse_traces_query(params)
    try:
        stream = await reader.find_traces(query)
    except BackendError as exc:
        return ApiResponse.from_backend_error(exc, "get_traces")
    spans = process_resource_spans(await _collect(stream, "get_traces"))
    log.info("get_traces: Success - Found %d spans", len(spans))
    traces = convert_to_jaeger_traces(spans)
    return ApiResponse(data=traces, total=len(traces), limit=limit, offset=0)


async def _fetch_trace(reader: TraceReader, trace_id: str, context: str) -> JaegerTrace:
    trace_bytes = parse_trace_id(trace_id)
    stream = await reader.get_traces([GetTraceParams(trace_id=trace_bytes)])
    spans = process_resource_spans(await _collect(stream, context))
    log.info("%s: Success - Found %d spans for trace '%s'", context, len(spans), trace_id)
    traces = convert_to_jaeger_traces(spans)
    if not traces:
        return JaegerTrace(trace_id=trace_id, spans=[], processes={})
    trace = traces[0]
    trace.trace_id = trace_id
    return trace


async def get_trace(reader: TraceReader, trace_id: str) -> ApiResponse:
    """Fetch one trace by its (normally hex) id."""
    log.info("get_trace: Starting request")
    try:
        trace = await _fetch_trace(reader, trace_id, "get_trace")
    except BackendError as exc:
        return ApiResponse.from_backend_error(exc, f"get_trace for trace_id '{trace_id}'")
    return ApiResponse(data=[trace], total=1, limit=0, offset=0)


async def get_dependencies(params: Any = None) -> ApiResponse:
    """Service dependencies are not available; always answers 501."""
    log.info("get_dependencies: Starting request")
    log.debug("get_dependencies: Input - params: %r", params)
    log.warning("get_dependencies: Dependencies API not implemented")
    return ApiResponse.not_implemented("Dependencies API not implemented")


async def get_archived_trace(reader: TraceReader, trace_id: str) -> ApiResponse:
    """Fetch an archived trace; a backend failure answers 404."""
    log.info("get_archived_trace: Starting request")
    try:
        trace = await _fetch_trace(reader, trace_id, "get_archived_trace")
    except BackendError as exc:
        log.error("get_archived_trace: backend error for archived trace '%s': %s", trace_id, exc)
        return ApiResponse.not_found("Trace not found in archive")
    return ApiResponse(data=[trace], total=1, limit=0, offset=0)