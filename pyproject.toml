[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "jaegerfront"
version = "0.1.0"
description = "An ASGI application serving the Jaeger UI and its HTTP API from a pluggable trace storage reader"
requires-python = ">=3.10"
dependencies = [
    "starlette",
]
keywords = ["jaeger", "tracing", "opentelemetry", "observability", "asgi", "starlette"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "httpx",
]

[tool.hatch.build.targets.wheel]
packages = ["jaegerfront"]

[tool.hatch.build.targets.sdist]
include = ["jaegerfront", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
