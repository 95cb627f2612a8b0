# jaegerfront

An ASGI application, built on Starlette, that serves the Jaeger UI's static
files and the HTTP API the UI talks to. Trace data comes from a storage
backend you plug in by subclassing `TraceReader`; spans in OpenTelemetry shape
are converted into the JSON layout the Jaeger UI reads.

## Install

```
pip install .
pip install ".[test]"   # with pytest, pytest-asyncio and httpx for the tests
```

## The application

`jaegerfront.app.create_app(reader, static_root)` returns a Starlette
application with these routes (all `GET`):

| Route                                    | Answer                                              |
|------------------------------------------|-----------------------------------------------------|
| `/api/services`                          | Names of all services that reported spans           |
| `/api/operations?service=…&spanKind=…`   | Operation names of a service                        |
| `/api/services/{service}/operations`     | Same, with the service in the path (`spanKind` optional) |
| `/api/traces`                            | Trace search                                        |
| `/api/traces/{trace_id}`                 | One trace by its hex id                             |
| `/api/dependencies`                      | Always an error entry with code 501                 |
| `/api/archive/{trace_id}`                | One archived trace by its hex id                    |

Every API answer has the envelope the Jaeger UI expects:

```json
{"data": ["frontend", "backend"], "total": 2, "limit": 0, "offset": 0, "errors": null}
```

Details:

- `/api/operations` without `service` answers 400.
- `/api/traces` takes `service`, `operation`, `start` and `end` (microseconds
  since the epoch), `minDuration` and `maxDuration` (microseconds) and
  `limit` (default 1000). Times and durations that do not parse are ignored;
  a `limit` that is not an unsigned 32-bit integer answers 400. The `limit`
  is echoed in the response and sent to the backend as the search depth.
  `tags` is accepted but not used for filtering.
- Spans are grouped into traces by trace id. Each trace's `processes` map
  holds the processes of every span in the response; a process id is `p`
  followed by the sum of the service name's code points.
- `/api/traces/{trace_id}` and `/api/archive/{trace_id}` always return one
  trace carrying the requested id, with no spans if none were found. An id
  that is not valid hex is sent to the backend as its UTF-8 bytes.
- When the backend raises `BackendError`, `data` is empty and `errors` holds
  one entry: code 500 with `backend error: …`, or code 404 with
  `Trace not found in archive` for the archive route. An error in the middle
  of a trace stream ends the stream; the spans received until then are used.

Any request that matches no API route is answered from the files below
`static_root`. An existing file is served with a content type guessed from
its name. Otherwise `index.html` is served if it exists, so the UI's
client-side routes work; without it the answer is 404 `File not found`.
Paths that would leave `static_root` are never served.

## Connecting a storage backend

Subclass `jaegerfront.api.TraceReader` and implement its four async methods:

- `get_services()` – a list of service names;
- `get_operations(service, span_kind)` – a list of `Operation`; `span_kind`
  is `""` when no filter was given;
- `find_traces(query)` – given a `TraceQueryParameters`, an async iterator of
  chunks, each an iterable of `ResourceSpans`;
- `get_traces(params)` – the same kind of stream for a list of `GetTraceParams`.

Raise `BackendError` when the backend cannot answer.

```python
from jaegerfront.api import Operation, TraceReader
from jaegerfront.app import create_app
from jaegerfront.models import AnyValue, KeyValue, Resource, ResourceSpans, ScopeSpans, Span


class MemoryReader(TraceReader):
    def __init__(self, resource_spans):
        self._resource_spans = resource_spans

    async def get_services(self):
        return ["frontend"]

    async def get_operations(self, service, span_kind):
        return [Operation(name="GET /users")]

    async def find_traces(self, query):
        return self._chunks()

    async def get_traces(self, params):
        return self._chunks()

    async def _chunks(self):
        yield self._resource_spans


spans = [
    ResourceSpans(
        resource=Resource([KeyValue("service.name", AnyValue("frontend"))]),
        scope_spans=[
            ScopeSpans([
                Span(
                    trace_id=bytes(range(16)),
                    span_id=bytes(range(8)),
                    name="GET /users",
                    start_time_unix_nano=1_000_000_000,
                    end_time_unix_nano=1_250_000_000,
                )
            ])
        ],
    )
]

app = create_app(MemoryReader(spans), static_root="path/to/jaeger-ui")
```

`app` is a plain ASGI application; run it with the ASGI server of your choice.

## The modules

- `jaegerfront.models` – span data types (`AnyValue`, `KeyValue`, `Resource`,
  `Span`, `ScopeSpans`, `ResourceSpans`, `Timestamp`, `Duration`), the Jaeger
  shapes (`JaegerSpan`, `JaegerTrace`, `JaegerProcess`, `JaegerTag`,
  `JaegerReference`), the `ApiResponse`/`ApiError` envelope, and the
  conversions `convert_span`, `convert_to_jaeger_traces`,
  `process_resource_spans`, `extract_service_name`, `parse_trace_id`,
  `parse_timestamp`, `parse_duration`, `process_id_for` and
  `format_any_value`.
- `jaegerfront.api` – `TraceReader`, `BackendError`, the request types and
  one coroutine per endpoint (`get_services`, `get_operations`,
  `get_service_operations`, `get_traces`, `get_trace`, `get_dependencies`,
  `get_archived_trace`), usable without the web layer.
- `jaegerfront.static` – `StaticFileService` and `static_file_service`, the
  static file lookup on its own.
- `jaegerfront.app` – `create_app`.

## What it does not do

- It has no command and does not start a server; you run the ASGI app.
- It ships no storage backend client and no copy of the Jaeger UI files: you
  supply a `TraceReader` and a directory holding the UI.
- Service dependencies are not provided, span logs are always empty, and the
  `tags` search parameter is not applied.
- It does not configure logging; it logs through the standard `logging`
  module under the `jaegerfront` logger names.