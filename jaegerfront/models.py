"""Trace data model and its conversion into the JSON shapes the Jaeger UI expects."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

log = logging.getLogger(__name__)

UNKNOWN_SERVICE = "unknown-service"
SERVICE_NAME_KEY = "service.name"
CHILD_OF = "CHILD_OF"
SAMPLED_FLAGS = 1

_HEX_RE = re.compile(r"(?:[0-9a-fA-F]{2})*")
_U32 = 1 << 32
_MICROS_PER_SECOND = 1_000_000
_NANOS_PER_MICRO = 1_000

_STR_ESCAPES = {
    "\t": "\\t",
    "\r": "\\r",
    "\n": "\\n",
    "\\": "\\\\",
    '"': '\\"',
    "\0": "\\0",
}


@dataclass
class AnyValue:
    """A tagged attribute value.

    ``value`` is one of: ``None`` (unset), ``str``, ``bool``, ``int``, ``float``,
    ``bytes``, a list of :class:`AnyValue` (an array) or a non-empty list of
    :class:`KeyValue` (a key/value list).
    """

    value: Union[None, str, bool, int, float, bytes, list] = None

    def __post_init__(self) -> None:
        inner = self.value
        if inner is None or isinstance(inner, (str, bool, int, float, bytes)):
            return
        if isinstance(inner, bytearray):
            self.value = bytes(inner)
            return
        if isinstance(inner, (list, tuple)):
            items = list(inner)
            if all(isinstance(item, AnyValue) for item in items) or all(
                isinstance(item, KeyValue) for item in items
            ):
                self.value = items
                return
            raise TypeError("list values must hold only AnyValue or only KeyValue items")
        raise TypeError(f"unsupported attribute value type: {type(inner).__name__}")


@dataclass
class KeyValue:
    """A named attribute."""

    key: str
    value: Optional[AnyValue] = None


@dataclass
class Resource:
    """The entity that produced a group of spans."""

    attributes: list[KeyValue] = field(default_factory=list)


@dataclass
class Span:
    """A single span as stored by the tracing backend."""

    trace_id: bytes = b""
    span_id: bytes = b""
    parent_span_id: bytes = b""
    name: str = ""
    start_time_unix_nano: int = 0
    end_time_unix_nano: int = 0
    attributes: list[KeyValue] = field(default_factory=list)


@dataclass
class ScopeSpans:
    """Spans emitted by one instrumentation scope."""

    spans: list[Span] = field(default_factory=list)


@dataclass
class ResourceSpans:
    """Spans grouped by the resource that produced them."""

    resource: Optional[Resource] = None
    scope_spans: list[ScopeSpans] = field(default_factory=list)


@dataclass(frozen=True)
class Timestamp:
    """A point in time as whole seconds plus nanoseconds since the Unix epoch."""

    seconds: int = 0
    nanos: int = 0


@dataclass(frozen=True)
class Duration:
    """A span of time as whole seconds plus nanoseconds."""

    seconds: int = 0
    nanos: int = 0


def _to_json(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, (list, tuple)):
        return [_to_json(item) for item in obj]
    if isinstance(obj, dict):
        return {key: _to_json(item) for key, item in obj.items()}
    return obj


@dataclass
class ApiError:
    """An error entry in an API response."""

    code: int
    msg: str

    def to_dict(self) -> dict:
        return {"code": self.code, "msg": self.msg}


@dataclass
class ApiResponse:
    """Response envelope shared by every Jaeger API endpoint."""

    data: Any = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0
    errors: Optional[list[ApiError]] = None

    def to_dict(self) -> dict:
        return {
            "data": _to_json(self.data),
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
            "errors": None if self.errors is None else [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_backend_error(cls, error: BaseException | str, context: str) -> "ApiResponse":
        """Build a 500 response for a failed storage backend call."""
        log.error("%s: backend error: %s", context, error)
        return cls.errored(ApiError(code=500, msg=f"backend error: {error}"))

    @classmethod
    def not_found(cls, message: str) -> "ApiResponse":
        return cls.errored(ApiError(code=404, msg=message))

    @classmethod
    def not_implemented(cls, message: str) -> "ApiResponse":
        return cls.errored(ApiError(code=501, msg=message))

    @classmethod
    def errored(cls, error: ApiError) -> "ApiResponse":
        return cls(data=[], total=0, limit=0, offset=0, errors=[error])


@dataclass
class JaegerReference:
    """A reference from one span to another."""

    ref_type: str
    trace_id: str
    span_id: str

    def to_dict(self) -> dict:
        return {"refType": self.ref_type, "traceID": self.trace_id, "spanID": self.span_id}


@dataclass
class JaegerTag:
    """A key/value tag with the value rendered as text."""

    key: str
    value: str

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value}


@dataclass
class JaegerProcess:
    """The service that emitted a span."""

    service_name: str
    tags: list[JaegerTag] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"serviceName": self.service_name, "tags": [t.to_dict() for t in self.tags]}


@dataclass
class JaegerSpan:
    """A span in the layout the Jaeger UI reads."""

    trace_id: str
    span_id: str
    parent_span_id: Optional[str]
    flags: int
    operation_name: str
    references: list[JaegerReference]
    start_time: int
    duration: int
    tags: list[JaegerTag]
    logs: list[Any]
    process_id: str

    def to_dict(self) -> dict:
        return {
            "traceID": self.trace_id,
            "spanID": self.span_id,
            "parentSpanID": self.parent_span_id,
            "flags": self.flags,
            "operationName": self.operation_name,
            "references": [r.to_dict() for r in self.references],
            "startTime": self.start_time,
            "duration": self.duration,
            "tags": [t.to_dict() for t in self.tags],
            "logs": list(self.logs),
            "processID": self.process_id,
        }


@dataclass
class JaegerTrace:
    """A trace with its spans and the processes they reference."""

    trace_id: str
    spans: list[JaegerSpan] = field(default_factory=list)
    processes: dict[str, JaegerProcess] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "traceID": self.trace_id,
            "spans": [s.to_dict() for s in self.spans],
            "processes": {pid: p.to_dict() for pid, p in self.processes.items()},
        }


def _debug_str(text: str) -> str:
    parts = []
    for ch in text:
        if ch in _STR_ESCAPES:
            parts.append(_STR_ESCAPES[ch])
        elif not ch.isprintable():
            parts.append(f"\\u{{{ord(ch):x}}}")
        else:
            parts.append(ch)
    return '"' + "".join(parts) + '"'


def _debug_float(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "inf" if number > 0 else "-inf"
    text = repr(number)
    if "e" in text:
        mantissa, exponent = text.split("e")
        if mantissa.endswith(".0"):
            mantissa = mantissa[:-2]
        return f"{mantissa}e{int(exponent)}"
    return text


def _debug_key_value(kv: KeyValue) -> str:
    value = "None" if kv.value is None else f"Some({_debug_any(kv.value)})"
    return f"KeyValue {{ key: {_debug_str(kv.key)}, value: {value} }}"


def _debug_inner(inner: Any) -> str:
    if isinstance(inner, bool):
        return f"BoolValue({'true' if inner else 'false'})"
    if isinstance(inner, str):
        return f"StringValue({_debug_str(inner)})"
    if isinstance(inner, int):
        return f"IntValue({inner})"
    if isinstance(inner, float):
        return f"DoubleValue({_debug_float(inner)})"
    if isinstance(inner, bytes):
        return f"BytesValue([{', '.join(str(b) for b in inner)}])"
    if inner and all(isinstance(item, KeyValue) for item in inner):
        body = ", ".join(_debug_key_value(item) for item in inner)
        return f"KvlistValue(KeyValueList {{ values: [{body}] }})"
    body = ", ".join(_debug_any(item) for item in inner)
    return f"ArrayValue(ArrayValue {{ values: [{body}] }})"


def _debug_any(value: AnyValue) -> str:
    if value.value is None:
        return "AnyValue { value: None }"
    return f"AnyValue {{ value: Some({_debug_inner(value.value)}) }}"


def format_any_value(value: Optional[AnyValue]) -> str:
    """Render an attribute value as tag text; a missing value renders as ``""``."""
    if value is None:
        return ""
    return _debug_any(value)


def extract_service_name(resource: Optional[Resource]) -> str:
    """Return the ``service.name`` string attribute, or ``"unknown-service"``."""
    if resource is None:
        return UNKNOWN_SERVICE
    attr = next((a for a in resource.attributes if a.key == SERVICE_NAME_KEY), None)
    if attr is None or attr.value is None or not isinstance(attr.value.value, str):
        return UNKNOWN_SERVICE
    return attr.value.value


def parse_trace_id(trace_id: str) -> bytes:
    """Decode a hex trace id; fall back to its UTF-8 bytes when it is not hex."""
    if _HEX_RE.fullmatch(trace_id):
        return bytes.fromhex(trace_id)
    log.warning("Failed to decode hex trace_id '%s', using as UTF-8 bytes", trace_id)
    return trace_id.encode("utf-8")


def _split_micros(microseconds: int) -> tuple[int, int]:
    # Truncating division: the remainder keeps the sign of the dividend.
    sign = -1 if microseconds < 0 else 1
    seconds, micros = divmod(abs(microseconds), _MICROS_PER_SECOND)
    return sign * seconds, sign * micros * _NANOS_PER_MICRO


def parse_timestamp(microseconds: int) -> Timestamp:
    """Convert microseconds since the Unix epoch to a :class:`Timestamp`."""
    seconds, nanos = _split_micros(microseconds)
    return Timestamp(seconds=seconds, nanos=nanos)


def parse_duration(microseconds: int) -> Duration:
    """Convert a non-negative number of microseconds to a :class:`Duration`."""
    if microseconds < 0:
        raise ValueError(f"duration must not be negative: {microseconds}")
    seconds, nanos = _split_micros(microseconds)
    return Duration(seconds=seconds, nanos=nanos)


def process_id_for(service_name: str) -> str:
    """Derive a process id from the wrapped 32-bit sum of the name's code points."""
    return f"p{sum(ord(ch) for ch in service_name) % _U32}"


def process_resource_spans(resource_spans: Iterable[ResourceSpans]) -> list[tuple[Span, str]]:
    """Flatten resource spans into ``(span, service_name)`` pairs."""
    pairs = []
    for resource_span in resource_spans:
        service_name = extract_service_name(resource_span.resource)
        for scope_span in resource_span.scope_spans:
            pairs.extend((span, service_name) for span in scope_span.spans)
    return pairs


def convert_span(span: Span, service_name: str) -> tuple[JaegerSpan, str, JaegerProcess]:
    """Convert a stored span into a Jaeger span, its process id and its process."""
    log.debug(
        "convert_span: Converting span %s (%s) %s",
        span.span_id.hex(),
        span.name,
        span.parent_span_id.hex(),
    )
    process_id = process_id_for(service_name)
    process = JaegerProcess(service_name=service_name, tags=[])

    trace_hex = span.trace_id.hex()
    parent_hex = span.parent_span_id.hex() if span.parent_span_id else None
    references = []
    if parent_hex is not None:
        references.append(JaegerReference(ref_type=CHILD_OF, trace_id=trace_hex, span_id=parent_hex))

    elapsed = max(0, span.end_time_unix_nano - span.start_time_unix_nano)
    jaeger_span = JaegerSpan(
        trace_id=trace_hex,
        span_id=span.span_id.hex(),
        parent_span_id=parent_hex,
        flags=SAMPLED_FLAGS,
        operation_name=span.name,
        references=references,
        start_time=span.start_time_unix_nano // _NANOS_PER_MICRO,
        duration=elapsed // _NANOS_PER_MICRO,
        tags=[JaegerTag(key=a.key, value=format_any_value(a.value)) for a in span.attributes],
        logs=[],
        process_id=process_id,
    )
    return jaeger_span, process_id, process


def convert_to_jaeger_traces(spans: Iterable[tuple[Span, str]]) -> list[JaegerTrace]:
    """Convert spans and group them into traces by trace id.

    Every trace carries the processes of all converted spans.
    """
    processes: dict[str, JaegerProcess] = {}
    by_trace: dict[str, list[JaegerSpan]] = {}
    for span, service_name in spans:
        jaeger_span, process_id, process = convert_span(span, service_name)
        processes[process_id] = process
        by_trace.setdefault(jaeger_span.trace_id, []).append(jaeger_span)

    log.debug(
        "Converted %d spans to Jaeger format with %d unique processes",
        sum(len(v) for v in by_trace.values()),
        len(processes),
    )
    return [
        JaegerTrace(trace_id=trace_id, spans=trace_spans, processes=dict(processes))
        for trace_id, trace_spans in by_trace.items()
    ]