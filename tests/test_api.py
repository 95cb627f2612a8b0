import pytest

from jaegerfront.api import (
    BackendError,
    GetTraceParams,
    Operation,
    TraceQueryParameters,
    TraceReader,
    get_archived_trace,
    get_dependencies,
    get_operations,
    get_service_operations,
    get_trace,
    get_traces,
    parse_traces_query,
)
from jaegerfront.models import (
    AnyValue,
    KeyValue,
    Resource,
    ResourceSpans,
    ScopeSpans,
    Span,
    parse_duration,
    parse_timestamp,
)


def _resource_spans(service, *spans):
    resource = Resource(attributes=[KeyValue("service.name", AnyValue(service))])
    return ResourceSpans(resource=resource, scope_spans=[ScopeSpans(spans=list(spans))])


def _span(trace_hex, span_hex, name="op"):
    return Span(
        trace_id=bytes.fromhex(trace_hex),
        span_id=bytes.fromhex(span_hex),
        name=name,
        start_time_unix_nano=2_000,
        end_time_unix_nano=5_000,
    )


async def _stream(chunks, fail_after=None):
    for index, chunk in enumerate(chunks):
        if fail_after is not None and index == fail_after:
            raise BackendError("stream broke")
        yield chunk


class FakeReader(TraceReader):
    def __init__(self, services=(), operations=(), chunks=(), fail=False, fail_after=None):
        self.services = list(services)
        self.operations = list(operations)
        self.chunks = list(chunks)
        self.fail = fail
        self.fail_after = fail_after
        self.calls = []

    async def get_services(self):
        self.calls.append(("get_services",))
        if self.fail:
            raise BackendError("unavailable")
        return self.services

    async def get_operations(self, service, span_kind):
        self.calls.append(("get_operations", service, span_kind))
        if self.fail:
            raise BackendError("unavailable")
        return self.operations

    async def find_traces(self, query):
        self.calls.append(("find_traces", query))
        if self.fail:
            raise BackendError("unavailable")
        return _stream(self.chunks, self.fail_after)

    async def get_traces(self, params):
        self.calls.append(("get_traces", params))
        if self.fail:
            raise BackendError("unavailable")
        return _stream(self.chunks, self.fail_after)


@pytest.mark.asyncio
async def test_get_services_lists_names():
    reader = FakeReader(services=["frontend", "backend", "database"])
    response = await get_services_call(reader)
    assert response.data == ["frontend", "backend", "database"]
    assert response.total == 3
    assert response.errors is None


async def get_services_call(reader):
    from jaegerfront.api import get_services

    return await get_services(reader)


@pytest.mark.asyncio
async def test_get_services_backend_error_is_500():
    response = await get_services_call(FakeReader(fail=True))
    assert response.data == []
    assert response.errors[0].code == 500
    assert "unavailable" in response.errors[0].msg


@pytest.mark.asyncio
async def test_get_operations_defaults_span_kind_to_empty():
    reader = FakeReader(operations=[Operation("GET /users"), Operation("POST /orders", "server")])
    response = await get_operations(reader, "frontend")
    assert reader.calls == [("get_operations", "frontend", "")]
    assert response.data == ["GET /users", "POST /orders"]
    assert response.total == 2


@pytest.mark.asyncio
async def test_get_service_operations_passes_span_kind():
    reader = FakeReader(operations=[Operation("process_payment")])
    response = await get_service_operations(reader, "billing", "server")
    assert reader.calls == [("get_operations", "billing", "server")]
    assert response.to_dict()["data"] == ["process_payment"]


@pytest.mark.asyncio
async def test_get_operations_backend_error():
    response = await get_service_operations(FakeReader(fail=True), "billing")
    assert response.total == 0
    assert response.errors[0].code == 500


def test_parse_traces_query_full():
    query = parse_traces_query(
        {
            "service": "frontend",
            "operation": "GET /users",
            "start": "1500000",
            "end": "-2500001",
            "minDuration": "1000",
            "maxDuration": "3000000",
            "limit": "20",
        }
    )
    assert query.service_name == "frontend"
    assert query.operation_name == "GET /users"
    assert query.start_time_min == parse_timestamp(1500000)
    assert query.start_time_max == parse_timestamp(-2500001)
    assert query.duration_min == parse_duration(1000)
    assert query.duration_max == parse_duration(3000000)
    assert query.search_depth == 20
    assert query.attributes == []


def test_parse_traces_query_defaults():
    query = parse_traces_query({})
    assert query == TraceQueryParameters(search_depth=1000)


@pytest.mark.parametrize("key", ["start", "end", "minDuration", "maxDuration"])
@pytest.mark.parametrize("text", ["", "abc", " 5", "1.5", "99999999999999999999999"])
def test_parse_traces_query_ignores_bad_numbers(key, text):
    query = parse_traces_query({key: text})
    assert (query.start_time_min, query.start_time_max, query.duration_min, query.duration_max) == (
        None,
        None,
        None,
        None,
    )


def test_parse_traces_query_rejects_negative_duration():
    assert parse_traces_query({"minDuration": "-5"}).duration_min is None


@pytest.mark.parametrize("text", ["", "abc", "-1", "4294967296"])
def test_parse_traces_query_invalid_limit(text):
    with pytest.raises(ValueError):
        parse_traces_query({"limit": text})


def test_parse_traces_query_limit_wraps_to_i32():
    assert parse_traces_query({"limit": "4294967295"}).search_depth == -1


@pytest.mark.asyncio
async def test_get_traces_groups_spans_by_trace():
    chunks = [
        [_resource_spans("frontend", _span("aa" * 16, "01" * 8), _span("bb" * 16, "02" * 8))],
        [_resource_spans("backend", _span("aa" * 16, "03" * 8))],
    ]
    reader = FakeReader(chunks=chunks)
    response = await get_traces(reader, {"service": "frontend"})
    assert response.limit == 1000
    assert response.total == len(response.data) == 2
    by_id = {trace.trace_id: trace for trace in response.data}
    assert sorted(s.span_id for s in by_id["aa" * 16].spans) == ["01" * 8, "03" * 8]
    assert [s.span_id for s in by_id["bb" * 16].spans] == ["02" * 8]
    sent = reader.calls[0][1]
    assert sent.service_name == "frontend"


@pytest.mark.asyncio
async def test_get_traces_keeps_chunks_before_stream_error():
    chunks = [
        [_resource_spans("frontend", _span("aa" * 16, "01" * 8))],
        [_resource_spans("frontend", _span("bb" * 16, "02" * 8))],
    ]
    response = await get_traces(FakeReader(chunks=chunks, fail_after=1), {})
    assert [t.trace_id for t in response.data] == ["aa" * 16]
    assert response.errors is None


@pytest.mark.asyncio
async def test_get_traces_backend_error():
    response = await get_traces(FakeReader(fail=True), {"limit": "5"})
    assert response.limit == 0
    assert response.errors[0].code == 500


@pytest.mark.asyncio
async def test_get_traces_invalid_limit_raises():
    with pytest.raises(ValueError):
        await get_traces(FakeReader(), {"limit": "many"})


@pytest.mark.asyncio
async def test_get_trace_keeps_requested_id():
    requested = "AB" * 16
    reader = FakeReader(chunks=[[_resource_spans("frontend", _span("ab" * 16, "01" * 8))]])
    response = await get_trace(reader, requested)
    assert reader.calls == [("get_traces", [GetTraceParams(trace_id=bytes.fromhex(requested))])]
    assert response.total == 1
    trace = response.data[0]
    assert trace.trace_id == requested
    assert trace.spans[0].trace_id == "ab" * 16


@pytest.mark.asyncio
async def test_get_trace_non_hex_id_sent_as_utf8_and_empty_result():
    reader = FakeReader(chunks=[])
    response = await get_trace(reader, "not-hex")
    assert reader.calls[0][1][0].trace_id == b"not-hex"
    assert response.to_dict()["data"] == [{"traceID": "not-hex", "spans": [], "processes": {}}]
    assert response.total == 1


@pytest.mark.asyncio
async def test_get_trace_backend_error_is_500():
    response = await get_trace(FakeReader(fail=True), "abcd")
    assert response.errors[0].code == 500
    assert response.data == []


@pytest.mark.asyncio
async def test_get_dependencies_not_implemented():
    response = await get_dependencies({"endTs": "1"})
    assert response.to_dict()["errors"] == [{"code": 501, "msg": "Dependencies API not implemented"}]
    assert response.data == []


@pytest.mark.asyncio
async def test_get_archived_trace_success():
    reader = FakeReader(chunks=[[_resource_spans("frontend", _span("cd" * 16, "04" * 8))]])
    response = await get_archived_trace(reader, "cd" * 16)
    assert response.data[0].trace_id == "cd" * 16
    assert [s.span_id for s in response.data[0].spans] == ["04" * 8]


@pytest.mark.asyncio
async def test_get_archived_trace_error_is_404():
    response = await get_archived_trace(FakeReader(fail=True), "cd" * 16)
    assert response.to_dict()["errors"] == [{"code": 404, "msg": "Trace not found in archive"}]
    assert response.total == 0