"""ASGI frontend serving the Jaeger UI and its HTTP API from a pluggable trace reader."""

__version__ = "0.1.0"