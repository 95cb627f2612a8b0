"""Serving of the Jaeger UI's static files, with index.html as the fallback for routes."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from http import HTTPStatus
from pathlib import Path
from typing import Optional, Union

log = logging.getLogger(__name__)

INDEX_FILE = "index.html"
OCTET_STREAM = "application/octet-stream"
TEXT_PLAIN = "text/plain"


@dataclass(frozen=True)
class StaticResponse:
    """The status, content type and body of a static file response."""

    status: int
    content_type: str
    body: bytes


class StaticFileService:
    """Looks up files below a root directory and answers requests for them.

    Paths without an extension are treated as UI routes and answered with
    ``index.html``; so is any path that names no file, as long as
    ``index.html`` exists.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self._resolved_root = self.root.resolve()

    def handle_request(self, path: str) -> StaticResponse:
        """Answer a request for the URL path ``path``."""
        relative = path.lstrip("/")

        found = self._find(relative)
        if found is not None:
            return self._serve(found, relative)

        if relative and "." not in relative:
            index = self._find(INDEX_FILE)
            if index is not None:
                return self._serve(index, INDEX_FILE)

        if not relative:
            index = self._find(INDEX_FILE)
            if index is not None:
                return self._serve(index, INDEX_FILE)

        return self._not_found()

    def _find(self, relative: str) -> Optional[Path]:
        if not relative:
            return None
        try:
            candidate = (self.root / relative).resolve()
            if not candidate.is_relative_to(self._resolved_root):
                return None
            return candidate if candidate.is_file() else None
        except (OSError, ValueError):
            return None

    def _serve(self, file: Path, name: str) -> StaticResponse:
        content_type = mimetypes.guess_type(name)[0] or OCTET_STREAM
        try:
            body = file.read_bytes()
        except OSError as exc:
            log.error("Failed to read static file '%s': %s", file, exc)
            return StaticResponse(
                HTTPStatus.INTERNAL_SERVER_ERROR, TEXT_PLAIN, b"Internal server error"
            )
        return StaticResponse(HTTPStatus.OK, content_type, body)

    def _not_found(self) -> StaticResponse:
        index = self._find(INDEX_FILE)
        if index is not None:
            return self._serve(index, INDEX_FILE)
        return StaticResponse(HTTPStatus.NOT_FOUND, TEXT_PLAIN, b"File not found")


def static_file_service(root: Union[str, Path]) -> StaticFileService:
    """Create the service that serves the UI files below ``root``."""
    return StaticFileService(root)